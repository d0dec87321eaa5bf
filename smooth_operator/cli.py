# smooth_operator/cli.py

"""
Command-line interface for installing, starting and checking the
Smooth Operator Agent Tools server.
"""

import time
from typing import Optional

import fire
from loguru import logger

from smooth_operator import setup_run_logging
from smooth_operator.client import SmoothOperatorClient
from smooth_operator.server.installer import get_installation_manager
from smooth_operator.server.readiness import PING_PATH


def install():
    """Extract the bundled server into the installation directory (once)."""
    install_dir = get_installation_manager().ensure_installed()
    logger.success(f"Server installed in {install_dir}")
    return str(install_dir)


def start(api_key: Optional[str] = None, timeout_ms: Optional[int] = None, log_dir=None):
    """Start a local server and keep it running until interrupted.

    Args:
        api_key: Screengrasp.com API key passed to the server.
        timeout_ms: Startup budget for port handshake and readiness.
        log_dir: Also write a debug log into this directory.
    """
    if log_dir:
        setup_run_logging(log_dir)
    with SmoothOperatorClient(api_key=api_key, startup_timeout_ms=timeout_ms) as client:
        print(client.base_url)
        try:
            while client.process is not None and client.process.is_alive:
                time.sleep(1)
            logger.warning("Server process exited on its own.")
        except KeyboardInterrupt:
            logger.info("Interrupted, stopping server...")


def ping(base_url: str):
    """Check that a running server answers its liveness endpoint."""
    client = SmoothOperatorClient(base_url=base_url)
    try:
        return client.get(PING_PATH)
    finally:
        client.stop()


def main():
    """Smooth Operator command line interface."""
    commands = {
        "install": install,
        "start": start,
        "ping": ping,
    }
    fire.Fire(commands)


if __name__ == "__main__":
    main()
