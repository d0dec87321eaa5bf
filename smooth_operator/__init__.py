import sys
import os
from loguru import logger

from smooth_operator.config import config

# Remove default handler
logger.remove()

# Add stderr handler
logger.add(sys.stderr, level=config.LOG_LEVEL.upper() if config.LOG_LEVEL else "INFO")


def setup_run_logging(run_dir=None):
    """
    Configure an additional file sink for a run.

    Args:
        run_dir: Directory to store run-specific logs. If None, logs go to
            config.LOG_DIR (or "logs").

    Returns:
        The log file path
    """
    if run_dir:
        os.makedirs(run_dir, exist_ok=True)
        log_file_path = os.path.join(run_dir, "run.log")
    else:
        log_dir = config.LOG_DIR or "logs"
        os.makedirs(log_dir, exist_ok=True)
        log_file_path = os.path.join(log_dir, "run_{time:YYYY-MM-DD_HH-mm-ss}.log")

    logger.add(
        log_file_path, rotation="50 MB", level="DEBUG", encoding="utf8", enqueue=True
    )

    logger.info(f"Run logging configured. Log path: {log_file_path}")
    return log_file_path


# File logging is opt-in through LOG_DIR
if config.LOG_DIR and not config.DISABLE_DEFAULT_LOGGING:
    setup_run_logging()


from smooth_operator.client import SmoothOperatorClient, SessionState  # noqa: E402
from smooth_operator.errors import (  # noqa: E402
    SmoothOperatorError,
    InstallError,
    ProcessLaunchError,
    HandshakeTimeoutError,
    ReadinessTimeoutError,
    InvalidStateError,
    HttpError,
    ProtocolError,
    TransportError,
)
from smooth_operator.types import MechanismType  # noqa: E402

__all__ = [
    "SmoothOperatorClient",
    "SessionState",
    "MechanismType",
    "SmoothOperatorError",
    "InstallError",
    "ProcessLaunchError",
    "HandshakeTimeoutError",
    "ReadinessTimeoutError",
    "InvalidStateError",
    "HttpError",
    "ProtocolError",
    "TransportError",
    "setup_run_logging",
    "config",
]
