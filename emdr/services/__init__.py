"""Service layer for business logic."""

from emdr.services.auth_service import AuthService
from emdr.services.local_store import (
    FileKeyValueStore,
    LocalProtocolService,
    MemoryKeyValueStore,
)
from emdr.services.protocol_service import ProtocolService
from emdr.services.protocol_store import IProtocolStore
from emdr.services.user_service import UserService

__all__ = [
    "AuthService",
    "FileKeyValueStore",
    "IProtocolStore",
    "LocalProtocolService",
    "MemoryKeyValueStore",
    "ProtocolService",
    "UserService",
]
