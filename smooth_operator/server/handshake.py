# smooth_operator/server/handshake.py

"""
Port handshake with a freshly spawned server.

The server picks a free port itself and writes it to a file whose name the
client chose and passed on the command line. The client polls for that file,
reads the port and deletes the file.
"""

from pathlib import Path
from typing import Optional, Union
import secrets

from loguru import logger

from smooth_operator.errors import HandshakeTimeoutError, ProtocolError
from smooth_operator.utils import Deadline, wait_until

_random = secrets.SystemRandom()


def new_handshake_file_name() -> str:
    """Random handshake file name, distinct per spawn attempt."""
    return f"portnr_{_random.randrange(1000000, 100000000)}.txt"


def parse_port(content: str) -> int:
    text = content.strip()
    try:
        port = int(text)
    except ValueError:
        raise ProtocolError(f"Handshake file contains no port number: {text!r}") from None
    if not 0 < port < 65536:
        raise ProtocolError(f"Handshake file contains an invalid port: {port}")
    return port


class PortHandshake:
    """One handshake attempt: a file name and, once read, the port."""

    def __init__(self, install_dir: Union[str, Path], file_name: Optional[str] = None):
        self.install_dir = Path(install_dir)
        self.file_name = file_name or new_handshake_file_name()
        self.port: Optional[int] = None
        self._content: Optional[str] = None

    @property
    def path(self) -> Path:
        return self.install_dir / self.file_name

    def clear_stale(self) -> None:
        """Delete a leftover file of the same name so it is not mistaken for a reply."""
        if self.path.exists():
            logger.debug(f"Removing stale handshake file {self.path}")
            self.path.unlink(missing_ok=True)

    def _poll(self) -> bool:
        try:
            content = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return False
        except OSError as e:
            # Still held open by the writer
            logger.debug(f"Handshake file not readable yet: {e}")
            return False
        if not content.strip():
            return False
        self._content = content
        return True

    def await_port(self, deadline: Deadline, interval_ms: int = 100) -> int:
        """
        Wait for the server to write its port, then consume the file.

        Raises:
            HandshakeTimeoutError: the file did not appear before the deadline.
            ProtocolError: the file content is not a port number.
        """
        if not wait_until(self._poll, deadline, interval_ms):
            raise HandshakeTimeoutError(
                f"Server failed to report port number within {deadline.budget_ms}ms "
                f"(no {self.file_name} in {self.install_dir})."
            )
        try:
            self.port = parse_port(self._content)
        finally:
            self.path.unlink(missing_ok=True)
        logger.debug(
            f"Server reported port {self.port} after {deadline.elapsed_ms:.0f}ms."
        )
        return self.port


def await_port(
    install_dir: Union[str, Path],
    handshake_file_name: str,
    deadline: Deadline,
    interval_ms: int = 100,
) -> int:
    """
    Functional form of ``PortHandshake.await_port`` for an existing file name.

    Does not delete a stale file of the same name. Call
    ``PortHandshake.clear_stale()`` before spawning the server, as
    ``SmoothOperatorClient.start_server`` does; clearing it here would race
    with a server that already wrote its port.
    """
    return PortHandshake(install_dir, handshake_file_name).await_port(deadline, interval_ms)
