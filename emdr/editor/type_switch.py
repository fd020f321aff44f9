"""Protocol type switching for the editor.

A draft carries exactly one protocol variant. Switching the type never
patches fields in place: the target variant is rebuilt from its defaults
and only the metadata block is carried over. When a type had already
been chosen, the switch waits for an explicit confirmation because the
type-specific input is discarded.
"""

from dataclasses import dataclass
from enum import Enum

from loguru import logger

from emdr.editor.defaults import new_draft
from emdr.schemas.protocol import ProtocolType, ProtocolVariant


class EditorKind(str, Enum):
    """The editor mounted for a protocol type."""

    STANDARD = "standard"
    IRI = "iri"
    CIPOS = "cipos"
    SICHERER_ORT = "sicherer_ort"


class SwitchState(str, Enum):
    EDITING = "editing"
    PENDING_CONFIRMATION = "pending_confirmation"


EDITOR_FOR_TYPE: dict[ProtocolType, EditorKind] = {
    ProtocolType.STANDARD: EditorKind.STANDARD,
    ProtocolType.CUSTOM: EditorKind.STANDARD,
    ProtocolType.IRI: EditorKind.IRI,
    ProtocolType.CIPOS: EditorKind.CIPOS,
    ProtocolType.SICHERER_ORT: EditorKind.SICHERER_ORT,
}

CONFIRMATION_MESSAGE = (
    "Protokolltyp wechseln ({prompt})? "
    "Die bisher eingegebenen typspezifischen Daten gehen dabei verloren."
)


def editor_for(protocol_type: ProtocolType | str) -> EditorKind:
    """Single dispatch point from protocol type to editor."""
    return EDITOR_FOR_TYPE[ProtocolType.parse(protocol_type)]


def rebuild(draft: ProtocolVariant, target: ProtocolType | str) -> ProtocolVariant:
    """Default draft of ``target`` carrying over the metadata of ``draft``."""
    return new_draft(
        target,
        id=draft.id,
        chiffre=draft.chiffre,
        datum=draft.datum,
        protokollnummer=draft.protokollnummer,
        created_at=draft.created_at,
        last_modified=draft.last_modified,
    )


def switch_prompt(old: ProtocolType, new: ProtocolType) -> str:
    return f"{old.value} → {new.value}"


@dataclass
class SwitchResult:
    """Outcome of a switch request."""

    state: SwitchState
    draft: ProtocolVariant
    editor: EditorKind
    prompt: str | None = None

    @property
    def message(self) -> str | None:
        if self.prompt is None:
            return None
        return CONFIRMATION_MESSAGE.format(prompt=self.prompt)


class EditorSession:
    """Draft under edit plus the type-switch state machine."""

    def __init__(self, draft: ProtocolVariant | None = None, type_selected: bool = False):
        self.draft = draft if draft is not None else new_draft()
        self.type_selected = type_selected
        self.pending: ProtocolType | None = None

    @property
    def current_type(self) -> ProtocolType:
        return ProtocolType.parse(self.draft.protocol_type)

    @property
    def editor(self) -> EditorKind:
        return editor_for(self.current_type)

    @property
    def state(self) -> SwitchState:
        if self.pending is not None:
            return SwitchState.PENDING_CONFIRMATION
        return SwitchState.EDITING

    def _result(self) -> SwitchResult:
        prompt = None
        if self.pending is not None:
            prompt = switch_prompt(self.current_type, self.pending)
        return SwitchResult(self.state, self.draft, self.editor, prompt)

    def _apply(self, target: ProtocolType) -> SwitchResult:
        logger.debug(f"Switching draft {self.draft.id} to {target.value}")
        self.draft = rebuild(self.draft, target)
        self.type_selected = True
        self.pending = None
        return self._result()

    def update_draft(self, draft: ProtocolVariant) -> None:
        """Replace the draft after an edit within the current type."""
        if ProtocolType.parse(draft.protocol_type) != self.current_type:
            raise ValueError("Use request_switch to change the protocol type")
        self.draft = draft

    def request_switch(self, target: ProtocolType | str) -> SwitchResult:
        """Ask to change the type.

        Raises ``InvalidProtocolTypeError`` for unknown tags.
        """
        target = ProtocolType.parse(target)
        if target == self.current_type:
            self.type_selected = True
            self.pending = None
            return self._result()
        if not self.type_selected:
            return self._apply(target)
        self.pending = target
        return self._result()

    def confirm(self) -> SwitchResult:
        """Apply the pending switch. Without one this is a no-op."""
        if self.pending is None:
            return self._result()
        return self._apply(self.pending)

    def cancel(self) -> SwitchResult:
        """Drop the pending switch and keep the draft as it was."""
        self.pending = None
        return self._result()


def switch_type(
    draft: ProtocolVariant,
    target: ProtocolType | str,
    type_selected: bool,
    confirm: bool = False,
) -> SwitchResult:
    """Stateless form of the switch for request/response callers."""
    session = EditorSession(draft, type_selected=type_selected)
    result = session.request_switch(target)
    if confirm and result.state == SwitchState.PENDING_CONFIRMATION:
        result = session.confirm()
    return result
