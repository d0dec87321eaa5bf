"""Managed server lifecycle: install, spawn, port handshake, readiness."""

from smooth_operator.server.installer import (
    InstallationManager,
    InstallationState,
    get_installation_manager,
)
from smooth_operator.server.process import ProcessSupervisor, ServerProcessHandle
from smooth_operator.server.handshake import PortHandshake, new_handshake_file_name
from smooth_operator.server.readiness import ReadinessProber

__all__ = [
    "InstallationManager",
    "InstallationState",
    "get_installation_manager",
    "ProcessSupervisor",
    "ServerProcessHandle",
    "PortHandshake",
    "new_handshake_file_name",
    "ReadinessProber",
]
