"""Request/response schemas of the protocol endpoints beyond the records themselves."""

from typing import Any

from pydantic import BaseModel, Field

from emdr.schemas.protocol import AnyProtocol, ProtocolListItem, ProtocolType


class DraftCreate(BaseModel):
    """New draft request schema."""

    protocol_type: str = Field(ProtocolType.STANDARD.value, alias="protocolType")
    chiffre: str = ""
    datum: str | None = None
    protokollnummer: str = ""

    model_config = {"populate_by_name": True}


class SwitchTypeRequest(BaseModel):
    """Type switch request: the draft, the target and whether a type was chosen."""

    draft: dict[str, Any]
    target_type: str = Field(..., alias="targetType")
    type_selected: bool = Field(True, alias="typeSelected")
    confirm: bool = False

    model_config = {"populate_by_name": True}


class SwitchTypeResponse(BaseModel):
    """Type switch outcome."""

    state: str
    editor: str
    draft: AnyProtocol
    prompt: str | None = None
    message: str | None = None


class ValidationResponse(BaseModel):
    """Result of validating a draft."""

    valid: bool
    errors: dict[str, str] = Field(default_factory=dict)
    missing_fields: list[str] = Field(default_factory=list, alias="missingFields")

    model_config = {"populate_by_name": True}


class ImportRequest(BaseModel):
    """Bulk import request schema. Records are checked one by one."""

    protocols: list[dict[str, Any]]


class ImportResult(BaseModel):
    imported: int


class ProtocolGroupDTO(BaseModel):
    """Protocols sharing one chiffre."""

    chiffre: str
    protocols: list[ProtocolListItem]


class ProtocolStats(BaseModel):
    """Protocol counts for the list header."""

    total: int
    by_type: dict[str, int] = Field(..., alias="byType")

    model_config = {"populate_by_name": True}
