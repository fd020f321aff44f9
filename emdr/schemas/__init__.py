"""Pydantic schemas for API request/response validation."""

from emdr.schemas.auth import AuthResponse, UserInfo, UserLogin, UserRegister
from emdr.schemas.protocol import (
    AnyProtocol,
    CIPOSProtocol,
    IRIProtocol,
    ProtocolListItem,
    ProtocolType,
    ProtocolVariant,
    SichererOrtProtocol,
    StandardProtocol,
    dump_protocol,
    parse_protocol,
)
from emdr.schemas.requests import (
    DraftCreate,
    ImportRequest,
    ImportResult,
    ProtocolGroupDTO,
    ProtocolStats,
    SwitchTypeRequest,
    SwitchTypeResponse,
    ValidationResponse,
)

__all__ = [
    # Auth
    "AuthResponse",
    "UserInfo",
    "UserLogin",
    "UserRegister",
    # Protocol
    "AnyProtocol",
    "CIPOSProtocol",
    "IRIProtocol",
    "ProtocolListItem",
    "ProtocolType",
    "ProtocolVariant",
    "SichererOrtProtocol",
    "StandardProtocol",
    "dump_protocol",
    "parse_protocol",
    # Requests
    "DraftCreate",
    "ImportRequest",
    "ImportResult",
    "ProtocolGroupDTO",
    "ProtocolStats",
    "SwitchTypeRequest",
    "SwitchTypeResponse",
    "ValidationResponse",
]
