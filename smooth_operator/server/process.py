# smooth_operator/server/process.py

"""Launching and terminating the local server process."""

from pathlib import Path
from typing import List, Optional, Sequence, Union
import subprocess
import sys

from loguru import logger

from smooth_operator.config import config
from smooth_operator.errors import ProcessLaunchError

NO_API_KEY_ARG = "no_api_key_provided"


def build_server_args(api_key: Optional[str], handshake_file_name: str) -> List[str]:
    """Command line flags for a library-managed, windowless server."""
    return [
        "/silent",
        "/close-with-parent-process",
        "/managed-by-lib",
        f"/apikey={api_key or NO_API_KEY_ARG}",
        f"/portnrfile={handshake_file_name}",
    ]


class ServerProcessHandle:
    """A spawned server process, owned by exactly one client session."""

    def __init__(self, process: subprocess.Popen, working_dir: Path):
        self.process = process
        self.working_dir = working_dir
        self.released = False

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def is_alive(self) -> bool:
        return not self.released and self.process.poll() is None

    def __repr__(self) -> str:
        state = "released" if self.released else ("alive" if self.is_alive else "exited")
        return f"ServerProcessHandle(pid={self.pid}, {state})"


class ProcessSupervisor:
    """Spawns the server executable and tears it down again."""

    def __init__(
        self,
        executable_name: Optional[str] = None,
        launcher: Sequence[str] = (),
        shutdown_grace_ms: Optional[int] = None,
    ):
        """
        Args:
            executable_name: File name of the server inside the install dir.
            launcher: Optional command prefix, e.g. an interpreter, placed
                before the executable path.
            shutdown_grace_ms: How long to wait for exit after terminating.
        """
        self.executable_name = executable_name or config.SERVER_EXECUTABLE
        self.launcher = list(launcher)
        self.shutdown_grace_ms = (
            shutdown_grace_ms if shutdown_grace_ms is not None else config.SHUTDOWN_GRACE_MS
        )

    def spawn(
        self,
        install_dir: Union[str, Path],
        handshake_file_name: str,
        api_key: Optional[str] = None,
    ) -> ServerProcessHandle:
        install_dir = Path(install_dir)
        executable = install_dir / self.executable_name
        if not executable.is_file():
            raise ProcessLaunchError(f"Server executable not found: {executable}")

        command = self.launcher + [str(executable)] + build_server_args(
            api_key, handshake_file_name
        )
        creationflags = subprocess.CREATE_NO_WINDOW if sys.platform == "win32" else 0
        logger.debug(f"Launching server: {executable} (cwd={install_dir})")
        try:
            process = subprocess.Popen(
                command,
                cwd=str(install_dir),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                creationflags=creationflags,
            )
        except OSError as e:
            raise ProcessLaunchError(f"Failed to start server process {executable}: {e}") from e

        logger.info(f"Server process started (pid={process.pid}).")
        return ServerProcessHandle(process, install_dir)

    def terminate(self, handle: ServerProcessHandle) -> None:
        """
        Stop the process if it is still running and release the handle.

        Waits up to the grace period after asking the process to terminate,
        then kills it. The handle is released whether or not an exit was
        observed.
        """
        if handle.released:
            return
        process = handle.process
        try:
            if process.poll() is None:
                logger.info(f"Stopping server process (pid={process.pid})...")
                process.terminate()
                try:
                    process.wait(timeout=self.shutdown_grace_ms / 1000)
                except subprocess.TimeoutExpired:
                    logger.warning(
                        f"Server process {process.pid} did not exit within "
                        f"{self.shutdown_grace_ms}ms, killing it."
                    )
                    process.kill()
                    try:
                        process.wait(timeout=self.shutdown_grace_ms / 1000)
                    except subprocess.TimeoutExpired:
                        logger.error(f"Server process {process.pid} survived kill.")
                logger.info(f"Server process {process.pid} exited ({process.returncode}).")
            else:
                logger.debug(f"Server process {process.pid} had already exited.")
        except OSError as e:
            logger.warning(f"Error while stopping server process {process.pid}: {e}")
        finally:
            handle.released = True
