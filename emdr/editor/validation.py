"""Pre-save validation of protocol drafts."""

from dataclasses import dataclass, field

from emdr.core.exceptions import ProtocolValidationError
from emdr.schemas.protocol import ProtocolVariant, StandardProtocol


@dataclass
class ValidationResult:
    """Field-keyed errors plus the aggregate list of offending fields."""

    errors: dict[str, str] = field(default_factory=dict)

    @property
    def missing_fields(self) -> list[str]:
        return list(self.errors)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def raise_for_errors(self) -> None:
        """Raise ``ProtocolValidationError`` unless the draft is valid."""
        if self.errors:
            raise ProtocolValidationError(dict(self.errors), self.missing_fields)


def validate_protocol(protocol: ProtocolVariant, type_selected: bool = True) -> ValidationResult:
    """Collect every validation error of a draft.

    Metadata is checked for all types. Standard and custom protocols also
    need a start node and at least one complete stimulation/fragment pair.
    """
    result = ValidationResult()
    errors = result.errors

    if not protocol.chiffre.strip():
        errors["chiffre"] = "Chiffre is required"
    if not protocol.datum:
        errors["datum"] = "Datum is required"
    if not protocol.protokollnummer.strip():
        errors["protokollnummer"] = "Protokollnummer is required"
    if not type_selected:
        errors["protocolType"] = "Protocol type is required"

    if isinstance(protocol, StandardProtocol):
        if not protocol.start_knoten.strip():
            errors["startKnoten"] = "Startknoten is required"
        if not protocol.channel:
            errors["channel"] = "at least one pair required"
        for index, item in enumerate(protocol.channel):
            if item.stimulation.anzahl_bewegungen <= 0:
                errors[f"channel_{index}_anzahl"] = "Anzahl Bewegungen must be positive"
            if not item.fragment.text.strip():
                errors[f"channel_{index}_fragment"] = "Fragment text is required"

    return result


def ensure_valid(protocol: ProtocolVariant, type_selected: bool = True) -> None:
    """Validate and raise ``ProtocolValidationError`` on failure."""
    validate_protocol(protocol, type_selected).raise_for_errors()
