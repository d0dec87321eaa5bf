# smooth_operator/server/installer.py

"""
Installs the bundled server into the per-user application data directory.

Extraction happens at most once per process: every caller of
``InstallationManager.ensure_installed`` shares one execution and its outcome,
including a failure. Separate processes are serialized with ``InstallLock``.
"""

from concurrent.futures import Future
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple, Union
import shutil
import threading
import time
import zipfile

from loguru import logger

from smooth_operator.config import config
from smooth_operator.errors import InstallError
from smooth_operator.server.file_lock import InstallLock
from smooth_operator.utils import log_duration

MARKER_FILE_NAME = "installedversion.txt"
BUNDLE_FILE_NAME = "smooth-operator-server.zip"


@dataclass
class InstallationState:
    """Outcome of a completed installation check."""

    install_dir: Path
    installed_version: bytes
    extracted: bool  # False when the on-disk marker already matched


class InstallationManager:
    """Single-flight installer for one target directory."""

    def __init__(
        self,
        install_dir: Optional[Union[str, Path]] = None,
        bundle_dir: Optional[Union[str, Path]] = None,
        lock_timeout_ms: int = 120000,
    ):
        self.install_dir = Path(install_dir) if install_dir else config.INSTALL_DIR
        self.bundle_dir = Path(bundle_dir) if bundle_dir else config.BUNDLE_DIR
        self.lock_timeout_ms = lock_timeout_ms
        self.extraction_count = 0
        self._guard = threading.Lock()
        self._future: Optional[Future] = None

    @property
    def lock_path(self) -> Path:
        # Sibling of the install dir so the up-to-date path writes nothing inside it
        return self.install_dir.parent / f"{self.install_dir.name}.lock"

    @property
    def state(self) -> Optional[InstallationState]:
        """The installation result, or None if not finished (or failed)."""
        future = self._future
        if future is None or not future.done() or future.exception() is not None:
            return None
        return future.result()

    def ensure_installed(self) -> Path:
        """
        Make sure the bundled server is extracted and return its directory.

        Safe to call from many threads. Only the first call does the work;
        the others block until it finishes and receive the same result or
        the same InstallError.
        """
        return self._run_once().result().install_dir

    def prefetch(self) -> None:
        """Start installation on a background thread without waiting for it."""
        if self._future is not None:
            return
        thread = threading.Thread(
            target=self._run_once, name="smooth-operator-install", daemon=True
        )
        thread.start()

    def _run_once(self) -> Future:
        with self._guard:
            if self._future is not None:
                return self._future
            future: Future = Future()
            self._future = future

        try:
            future.set_result(self._install())
        except BaseException as e:
            error = e
            if not isinstance(e, InstallError):
                error = InstallError(f"Installation into {self.install_dir} failed: {e!r}")
                error.__cause__ = e
            logger.error(f"Server installation failed: {error}")
            future.set_exception(error)
            # Waiters get the InstallError; the interrupted caller sees its interrupt
            if not isinstance(e, Exception):
                raise
        return future

    def _read_bundled_marker(self) -> bytes:
        marker_path = self.bundle_dir / MARKER_FILE_NAME
        try:
            return marker_path.read_bytes()
        except OSError as e:
            raise InstallError(f"Could not find bundled version marker {marker_path}") from e

    def _read_installed_marker(self) -> Optional[bytes]:
        marker_path = self.install_dir / MARKER_FILE_NAME
        if not marker_path.is_file():
            return None
        try:
            return marker_path.read_bytes()
        except OSError as e:
            logger.warning(f"Could not read installed version marker {marker_path}: {e}")
            return None

    def _install(self) -> InstallationState:
        start = time.monotonic()
        logger.info(f"Ensuring server installation in {self.install_dir}...")
        try:
            self.install_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise InstallError(f"Could not create {self.install_dir}: {e}") from e

        bundled_marker = self._read_bundled_marker()
        if self._read_installed_marker() == bundled_marker:
            logger.info("Installed server version is current, skipping extraction.")
            return InstallationState(self.install_dir, bundled_marker, extracted=False)

        with InstallLock(self.lock_path, timeout_ms=self.lock_timeout_ms):
            # Another process may have finished while we waited for the lock
            if self._read_installed_marker() == bundled_marker:
                logger.info("Server was installed by another process meanwhile.")
                return InstallationState(self.install_dir, bundled_marker, extracted=False)

            entries, size = self._extract_bundle()
            # Marker goes last: a partial extraction must not look current
            marker_path = self.install_dir / MARKER_FILE_NAME
            try:
                marker_path.write_bytes(bundled_marker)
            except OSError as e:
                raise InstallError(f"Could not write version marker {marker_path}: {e}") from e

        self.extraction_count += 1
        duration = (time.monotonic() - start) * 1000
        logger.success(
            f"Extracted {entries} server files ({size} bytes) to {self.install_dir} "
            f"in {duration:.0f}ms."
        )
        return InstallationState(self.install_dir, bundled_marker, extracted=True)

    @log_duration("Server bundle extraction")
    def _extract_bundle(self) -> Tuple[int, int]:
        archive_path = self.bundle_dir / BUNDLE_FILE_NAME
        if not archive_path.is_file():
            raise InstallError(f"Could not find bundled server package {archive_path}")

        root = self.install_dir.resolve()
        entries = 0
        size = 0
        try:
            with zipfile.ZipFile(archive_path) as archive:
                for info in archive.infolist():
                    destination = (root / info.filename).resolve()
                    if destination != root and root not in destination.parents:
                        raise InstallError(
                            f"Archive entry {info.filename!r} points outside {root}"
                        )
                    if info.is_dir():
                        destination.mkdir(parents=True, exist_ok=True)
                        continue
                    destination.parent.mkdir(parents=True, exist_ok=True)
                    try:
                        with archive.open(info) as src, open(destination, "wb") as dst:
                            shutil.copyfileobj(src, dst)
                    except OSError as e:
                        raise InstallError(
                            f"Failed to extract {info.filename} to {destination} "
                            f"(is a previous server instance still running?): {e}"
                        ) from e
                    entries += 1
                    size += info.file_size
        except zipfile.BadZipFile as e:
            raise InstallError(f"Bundled server package {archive_path} is corrupt: {e}") from e
        return entries, size


_default_manager: Optional[InstallationManager] = None
_default_manager_guard = threading.Lock()


def get_installation_manager() -> InstallationManager:
    """Process-wide installer for the configured install directory."""
    global _default_manager
    with _default_manager_guard:
        if _default_manager is None:
            _default_manager = InstallationManager()
        return _default_manager
