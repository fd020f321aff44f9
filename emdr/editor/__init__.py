"""Draft editing: defaults, type switching, section helpers, validation."""

from emdr.editor.defaults import new_draft, today_iso
from emdr.editor.type_switch import (
    EditorKind,
    EditorSession,
    SwitchResult,
    SwitchState,
    editor_for,
    rebuild,
    switch_type,
)
from emdr.editor.validation import ValidationResult, ensure_valid, validate_protocol

__all__ = [
    # Defaults
    "new_draft",
    "today_iso",
    # Type switch
    "EditorKind",
    "EditorSession",
    "SwitchResult",
    "SwitchState",
    "editor_for",
    "rebuild",
    "switch_type",
    # Validation
    "ValidationResult",
    "ensure_valid",
    "validate_protocol",
]
