# smooth_operator/transport.py

"""JSON-over-HTTP transport to a running server."""

from functools import lru_cache
from typing import Any, Optional, Type, TypeVar

from loguru import logger
from pydantic import BaseModel, TypeAdapter, ValidationError
import requests

from smooth_operator.config import config
from smooth_operator.errors import (
    HttpError,
    InvalidStateError,
    ProtocolError,
    TransportError,
)

T = TypeVar("T")

NO_API_KEY_HEADER = "no_api_key_specified"


@lru_cache(maxsize=None)
def _adapter(response_type: Any) -> TypeAdapter:
    return TypeAdapter(response_type)


class HttpFacade:
    """
    Typed GET/POST against one server, reusing a single requests.Session.

    The base URL may be given up front (attaching to an external server) or
    set once later, after the port handshake. It can never change afterwards.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
    ):
        self._base_url: Optional[str] = None
        self.timeout = timeout if timeout is not None else config.REQUEST_TIMEOUT
        self.session = session if session is not None else requests.Session()
        self.session.headers.update(
            {
                "Accept": "application/json",
                "Authorization": f"Bearer {api_key or NO_API_KEY_HEADER}",
            }
        )
        if base_url:
            self.set_base_url(base_url)

    @property
    def base_url(self) -> Optional[str]:
        return self._base_url

    def set_base_url(self, base_url: str) -> None:
        if self._base_url is not None:
            raise InvalidStateError(
                f"Base URL is already set to {self._base_url}; it cannot be changed."
            )
        self._base_url = base_url.rstrip("/")

    def get(
        self,
        path: str,
        response_type: Optional[Type[T]] = None,
        timeout: Optional[float] = None,
    ) -> T:
        """GET ``path`` and parse the JSON body into ``response_type``."""
        response = self._request("GET", path, timeout=timeout)
        return self._decode(response, response_type)

    def post(
        self,
        path: str,
        body: Any = None,
        response_type: Optional[Type[T]] = None,
        timeout: Optional[float] = None,
    ) -> T:
        """POST ``body`` as a JSON object (``{}`` when None) and parse the reply."""
        if body is None:
            payload = {}
        elif isinstance(body, BaseModel):
            payload = body.model_dump(mode="json", by_alias=True)
        else:
            payload = body
        response = self._request("POST", path, json=payload, timeout=timeout)
        return self._decode(response, response_type)

    def get_text(self, path: str, timeout: Optional[float] = None) -> str:
        """GET ``path`` and return the raw response body."""
        return self._request("GET", path, timeout=timeout).text

    def close(self) -> None:
        self.session.close()

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        if not self._base_url:
            raise InvalidStateError(
                "Base URL is not set. Call start_server() first, or provide a "
                "base_url when creating the client."
            )
        url = f"{self._base_url}{path}"
        if kwargs.get("timeout") is None:
            kwargs["timeout"] = self.timeout
        try:
            response = self.session.request(method, url, **kwargs)
        except requests.exceptions.RequestException as e:
            raise TransportError(f"{method} {url} failed: {e}") from e

        if not 200 <= response.status_code < 300:
            logger.debug(f"{method} {url} -> {response.status_code}")
            raise HttpError(response.status_code, response.text, url)
        return response

    @staticmethod
    def _decode(response: requests.Response, response_type: Optional[Type[T]]) -> T:
        text = response.text
        try:
            if response_type is None:
                return _adapter(Any).validate_json(text) if text else None
            return _adapter(response_type).validate_json(text)
        except ValidationError as e:
            raise ProtocolError(
                f"Could not parse response from {response.url} as "
                f"{getattr(response_type, '__name__', response_type)}: {e}"
            ) from e
