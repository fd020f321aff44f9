"""Database models."""

from emdr.models.protocol import ProtocolRecord
from emdr.models.session import LoginSession
from emdr.models.user import User

__all__ = [
    "LoginSession",
    "ProtocolRecord",
    "User",
]
