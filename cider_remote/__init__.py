"""
cider-remote - Python remote control for the Cider music player.

A stateful client for Cider's WebSocket control API.
"""

__version__ = "0.1.0"

from .client import CiderClient
from .config import Config, ConfigError, load_config
from .connect import CiderSession, ConnectionState, SessionEvent

__all__ = [
    "__version__",
    "CiderClient",
    "CiderSession",
    "Config",
    "ConfigError",
    "ConnectionState",
    "SessionEvent",
    "load_config",
]
