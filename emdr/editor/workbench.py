"""Workbench controller: list view, editor view and notifications.

Drives one therapist's protocols through an ``IProtocolStore``. Failures
of the store or the exporters are turned into notifications so the
current draft is never lost.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from loguru import logger

from emdr.core.exceptions import ExportError, StaleIndexError, StorageError
from emdr.editor.defaults import new_draft
from emdr.editor.type_switch import EditorSession
from emdr.editor.validation import ValidationResult, validate_protocol
from emdr.schemas.protocol import ProtocolListItem, ProtocolVariant
from emdr.services.export_service import (
    bulk_export_filename,
    bulk_to_json_bytes,
    export_filename,
    to_json_bytes,
    to_pdf_bytes,
)
from emdr.services.listing import (
    ALL_TYPES,
    ExpansionState,
    ProtocolGroup,
    count_by_type,
    filter_protocols,
    group_by_chiffre,
)
from emdr.services.protocol_store import IProtocolStore

MSG_CREATED = "Protokoll wurde erfolgreich erstellt."
MSG_SAVED = "Protokoll wurde erfolgreich gespeichert."
MSG_SAVE_FAILED = "Protokoll konnte nicht gespeichert werden."
MSG_LOAD_FAILED = "Protokoll konnte nicht geladen werden."
MSG_DELETED = "Protokoll wurde erfolgreich gelöscht."
MSG_DELETE_FAILED = "Fehler beim Löschen des Protokolls."
MSG_JSON_EXPORTED = "JSON-Export erfolgreich."
MSG_JSON_EXPORT_FAILED = "Fehler beim JSON-Export."
MSG_PDF_EXPORTED = "PDF-Export erfolgreich."
MSG_PDF_EXPORT_FAILED = "Fehler beim PDF-Export."
MSG_INCOMPLETE = "Bitte füllen Sie alle Pflichtfelder aus."
MSG_IMPORTED = "{count} Protokolle importiert."
MSG_LIST_STALE = "Die Protokollliste wurde neu geladen."
MSG_LIST_LOAD_FAILED = "Protokolle konnten nicht geladen werden."
MSG_IMPORT_FAILED = "Protokolle konnten nicht importiert werden."

DELETE_PROMPT = (
    'Möchten Sie das Protokoll "{chiffre} - {protokollnummer}" wirklich löschen? '
    "Diese Aktion kann nicht rückgängig gemacht werden."
)


class View(str, Enum):
    LIST = "list"
    EDITOR = "editor"


class NotificationKind(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


@dataclass
class Notification:
    message: str
    kind: NotificationKind = NotificationKind.SUCCESS


@dataclass
class ExportFile:
    """Export ready to be handed to the user."""

    filename: str
    content: bytes
    media_type: str


class Workbench:
    """State of the protocol workbench for one store."""

    def __init__(self, store: IProtocolStore):
        self.store = store
        self.view = View.LIST
        self.protocols: list[ProtocolListItem] = []
        self.session: EditorSession | None = None
        self.is_new = False
        self.validation: ValidationResult | None = None
        self.pending_delete: ProtocolListItem | None = None
        self.notification: Notification | None = None
        self.expansion = ExpansionState()
        self.filter_type: str = ALL_TYPES
        self.search_term = ""

    def notify(self, message: str, kind: NotificationKind = NotificationKind.SUCCESS) -> None:
        self.notification = Notification(message, kind)

    def dismiss_notification(self) -> None:
        self.notification = None

    # List view

    async def refresh(self) -> list[ProtocolListItem]:
        """Reload the summaries from the store.

        On failure the previous list is kept and an error notification is set.
        """
        try:
            self.protocols = await self.store.list()
        except StorageError as e:
            logger.error(f"Loading protocol list failed: {e}")
            self.notify(MSG_LIST_LOAD_FAILED, NotificationKind.ERROR)
        return self.protocols

    def visible_protocols(self) -> list[ProtocolListItem]:
        return filter_protocols(self.protocols, self.filter_type, self.search_term)

    def visible_groups(self) -> list[ProtocolGroup]:
        return group_by_chiffre(self.visible_protocols())

    def stats(self) -> dict[str, int]:
        return count_by_type(self.protocols)

    def toggle_all_groups(self) -> None:
        self.expansion.toggle_all(g.chiffre for g in self.visible_groups())

    # Editor view

    def new_protocol(self) -> EditorSession:
        """Open the editor with a fresh draft whose type is not chosen yet."""
        self.session = EditorSession(new_draft(), type_selected=False)
        self.is_new = True
        self.validation = None
        self.view = View.EDITOR
        return self.session

    async def edit_protocol(self, protocol_id: str) -> EditorSession | None:
        """Open the editor for a stored protocol."""
        try:
            protocol = await self.store.load(protocol_id)
        except StorageError as e:
            logger.error(f"Loading protocol {protocol_id} failed: {e}")
            protocol = None
        if protocol is None:
            self.notify(MSG_LOAD_FAILED, NotificationKind.ERROR)
            return None

        self.session = EditorSession(protocol, type_selected=True)
        self.is_new = False
        self.validation = None
        self.view = View.EDITOR
        return self.session

    async def save(self) -> ProtocolVariant | None:
        """Validate and save the current draft, then return to the list.

        On validation or storage failure the editor stays open with the
        draft unchanged.
        """
        if self.session is None:
            return None

        self.validation = validate_protocol(self.session.draft, self.session.type_selected)
        if not self.validation.is_valid:
            self.notify(MSG_INCOMPLETE, NotificationKind.ERROR)
            return None

        try:
            saved = await self.store.save(self.session.draft)
        except StaleIndexError as e:
            logger.warning(f"Saved with stale list: {e}")
            self.notify(MSG_LIST_STALE, NotificationKind.INFO)
            self._close_editor()
            await self.refresh()
            return None
        except StorageError as e:
            logger.error(f"Saving protocol failed: {e}")
            self.notify(MSG_SAVE_FAILED, NotificationKind.ERROR)
            return None

        self.notify(MSG_CREATED if self.is_new else MSG_SAVED)
        self._close_editor()
        await self.refresh()
        return saved

    def cancel_edit(self) -> None:
        self._close_editor()

    def _close_editor(self) -> None:
        self.session = None
        self.is_new = False
        self.validation = None
        self.view = View.LIST

    # Deletion

    def request_delete(self, protocol_id: str) -> str | None:
        """Start deleting a listed protocol. Returns the confirmation prompt."""
        item = next((p for p in self.protocols if p.id == protocol_id), None)
        if item is None:
            return None
        self.pending_delete = item
        return DELETE_PROMPT.format(chiffre=item.chiffre, protokollnummer=item.protokollnummer)

    def cancel_delete(self) -> None:
        self.pending_delete = None

    async def confirm_delete(self) -> bool:
        if self.pending_delete is None:
            return False
        protocol_id = self.pending_delete.id
        self.pending_delete = None
        try:
            await self.store.delete(protocol_id)
        except StorageError as e:
            logger.error(f"Deleting protocol {protocol_id} failed: {e}")
            self.notify(MSG_DELETE_FAILED, NotificationKind.ERROR)
            return False
        self.notify(MSG_DELETED)
        await self.refresh()
        return True

    # Export / import

    async def export_json(self, protocol_id: str) -> ExportFile | None:
        protocol = await self._load_for_export(protocol_id)
        if protocol is None:
            return None
        try:
            content = to_json_bytes(protocol)
        except (TypeError, ValueError) as e:
            logger.error(f"JSON export of {protocol_id} failed: {e}")
            self.notify(MSG_JSON_EXPORT_FAILED, NotificationKind.ERROR)
            return None
        self.notify(MSG_JSON_EXPORTED)
        return ExportFile(export_filename(protocol, "json"), content, "application/json")

    async def export_pdf(self, protocol_id: str) -> ExportFile | None:
        protocol = await self._load_for_export(protocol_id)
        if protocol is None:
            return None
        try:
            content = to_pdf_bytes(protocol)
        except ExportError:
            self.notify(MSG_PDF_EXPORT_FAILED, NotificationKind.ERROR)
            return None
        self.notify(MSG_PDF_EXPORTED)
        return ExportFile(export_filename(protocol, "pdf"), content, "application/pdf")

    async def export_all(self) -> ExportFile | None:
        try:
            protocols = await self.store.export_all()
        except StorageError as e:
            logger.error(f"Bulk export failed: {e}")
            self.notify(MSG_JSON_EXPORT_FAILED, NotificationKind.ERROR)
            return None
        self.notify(MSG_JSON_EXPORTED)
        return ExportFile(bulk_export_filename(), bulk_to_json_bytes(protocols), "application/json")

    async def import_records(self, records: list[dict[str, Any]]) -> int:
        try:
            count = await self.store.import_many(records)
        except StorageError as e:
            logger.error(f"Import failed: {e}")
            self.notify(MSG_IMPORT_FAILED, NotificationKind.ERROR)
            return 0
        self.notify(MSG_IMPORTED.format(count=count), NotificationKind.INFO)
        await self.refresh()
        return count

    async def _load_for_export(self, protocol_id: str) -> ProtocolVariant | None:
        try:
            protocol = await self.store.load(protocol_id)
        except StorageError as e:
            logger.error(f"Loading protocol {protocol_id} for export failed: {e}")
            protocol = None
        if protocol is None:
            self.notify(MSG_LOAD_FAILED, NotificationKind.ERROR)
        return protocol
