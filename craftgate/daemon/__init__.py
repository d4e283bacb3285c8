"""Daemon service: foreground runner and local IPC control"""

from .service import DaemonService
from .ipc import IPCServer, IPCClient

__all__ = ["DaemonService", "IPCServer", "IPCClient"]
