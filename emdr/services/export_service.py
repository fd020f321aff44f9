"""JSON and PDF export of protocols."""

import json
import re
from datetime import date, datetime
from typing import Any

from fpdf import FPDF
from fpdf.enums import XPos, YPos
from fpdf.errors import FPDFException
from loguru import logger

from emdr.core.exceptions import ExportError
from emdr.schemas.protocol import (
    ProtocolVariant,
    StandardProtocol,
    dump_protocol,
    split_protocol,
)

SECTION_TITLES = {
    "indikation": "Indikation und Ausgangslage",
    "positiver_moment": "Auslöser der Ressource",
    "koerperwahrnehmung": "Körperwahrnehmung",
    "lope_vorher": "LOPE vorher",
    "bilaterale_stimulation": "Bilaterale Stimulation",
    "lope_nachher": "LOPE nachher",
    "ressourcen_einschaetzung": "Einschätzung der Ressource",
    "gegenwartsorientierung_vorher": "Gegenwartsorientierung vorher",
    "verstaerkung_gegenwart": "Verstärkung der sicheren Gegenwart",
    "erster_kontakt": "Erster Kontakt mit der Belastung",
    "durchgaenge": "Durchgänge",
    "abschlussbewertung": "Abschlussbewertung",
    "nachbesprechung": "Nachbesprechung",
    "schwierigkeiten": "Schwierigkeiten",
    "abschluss_dokumentation": "Abschluss der Dokumentation",
    "einfuehrung": "Einführung",
    "findung": "Findung des sicheren Ortes",
    "set1": "Set 1",
    "set2": "Set 2",
    "wortarbeit": "Wortarbeit",
    "transfer": "Transfer in den Alltag",
    "abschluss": "Abschluss",
    "therapeutische_einschaetzung": "Therapeutische Einschätzung",
}

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9_.-]")

_LATIN1_REPLACEMENTS = {
    "→": "->",
    "\u2014": "-",
    "\u2013": "-",
    "‘": "'",
    "’": "'",
    "“": '"',
    "”": '"',
    "„": '"',
    "…": "...",
    "\u00a0": " ",
}


def format_date_german(iso_date: str) -> str:
    """Format YYYY-MM-DD as DD.MM.YYYY."""
    if not iso_date:
        return "-"
    parts = iso_date.split("-")
    if len(parts) != 3:
        return iso_date
    year, month, day = parts
    return f"{day}.{month}.{year}"


def export_filename(protocol: ProtocolVariant, extension: str) -> str:
    """File name ``EMDR_<chiffre>_<datum>_<nr>.<ext>`` restricted to safe characters."""
    name = f"EMDR_{protocol.chiffre}_{protocol.datum}_{protocol.protokollnummer}.{extension}"
    return _UNSAFE_FILENAME_CHARS.sub("_", name)


def bulk_export_filename(today: date | None = None) -> str:
    """File name of the export of all protocols."""
    today = today or date.today()
    return f"EMDR_Protokolle_{today.isoformat()}.json"


def to_json_bytes(protocol: ProtocolVariant) -> bytes:
    """Canonical indented JSON of one protocol."""
    return json.dumps(dump_protocol(protocol), indent=2, ensure_ascii=False).encode("utf-8")


def bulk_to_json_bytes(protocols: list[ProtocolVariant]) -> bytes:
    """Indented JSON array of full protocols, as accepted by the import."""
    payload = [dump_protocol(p) for p in protocols]
    return json.dumps(payload, indent=2, ensure_ascii=False).encode("utf-8")


def to_latin1_safe(text: str) -> str:
    """Make text printable with the PDF core fonts (latin-1)."""
    for src, dst in _LATIN1_REPLACEMENTS.items():
        text = text.replace(src, dst)
    return text.encode("latin-1", errors="replace").decode("latin-1")


class ProtocolPDF(FPDF):
    """A4 document with a generation timestamp in the footer."""

    def __init__(self, generated_at: datetime):
        super().__init__(orientation="P", unit="mm", format="A4")
        self.generated_at = generated_at
        self.set_auto_page_break(auto=True, margin=20)
        self.set_margins(20, 20, 20)

    def footer(self) -> None:
        self.set_y(-15)
        self.set_font("Helvetica", size=8)
        self.set_text_color(150)
        self.cell(0, 5, f"Erstellt am {self.generated_at.strftime('%d.%m.%Y, %H:%M:%S')}")
        self.set_text_color(0)

    def line_text(self, text: str, size: int = 10, style: str = "", height: float = 5) -> None:
        self.set_font("Helvetica", style, size)
        self.multi_cell(0, height, to_latin1_safe(text), new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    def heading(self, text: str) -> None:
        self.ln(4)
        self.line_text(text, size=14, style="B", height=7)
        self.ln(1)


def _format_value(value: Any) -> str:
    if value is None or value == "":
        return "-"
    if isinstance(value, bool):
        return "ja" if value else "nein"
    if isinstance(value, list):
        return ", ".join(str(v) for v in value) if value else "-"
    return str(value)


def _label(key: str) -> str:
    return key.replace("_", " ").capitalize()


def _render_fields(pdf: ProtocolPDF, data: dict[str, Any], indent: str = "") -> None:
    for key, value in data.items():
        if key == "id":
            continue
        if isinstance(value, dict):
            pdf.line_text(f"{indent}{_label(key)}:", style="B")
            _render_fields(pdf, value, indent + "   ")
        elif value and isinstance(value, list) and isinstance(value[0], dict):
            pdf.line_text(f"{indent}{_label(key)}:", style="B")
            for index, entry in enumerate(value, 1):
                pdf.line_text(f"{indent}   {index}.", style="B")
                _render_fields(pdf, entry, indent + "      ")
        else:
            pdf.line_text(f"{indent}{_label(key)}: {_format_value(value)}")


def _render_metadata(pdf: ProtocolPDF, protocol: ProtocolVariant) -> None:
    pdf.set_font("Helvetica", "B", 18)
    pdf.cell(0, 10, "EMDR Protokoll", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.ln(2)

    y = pdf.get_y()
    pdf.set_draw_color(100, 100, 100)
    pdf.set_fill_color(240, 240, 240)
    pdf.rect(pdf.l_margin, y, pdf.epw, 25, style="DF")
    pdf.set_xy(pdf.l_margin + 5, y + 2)
    pdf.set_font("Helvetica", size=10)
    for text in (
        f"Chiffre: {protocol.chiffre}",
        f"Datum: {format_date_german(protocol.datum)}",
        f"Protokollnummer: {protocol.protokollnummer}",
        f"Protokolltyp: {protocol.protocol_type}",
    ):
        pdf.set_x(pdf.l_margin + 5)
        pdf.cell(0, 5, to_latin1_safe(text), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.set_y(y + 27)


def _render_standard(pdf: ProtocolPDF, protocol: StandardProtocol) -> None:
    pdf.heading("Startknoten")
    pdf.line_text(protocol.start_knoten or "-")

    pdf.heading("Kanal (Stimulationen & Fragmente)")
    if not protocol.channel:
        pdf.set_text_color(100)
        pdf.line_text("Keine Stimulation-Fragment-Paare eingetragen.", style="I")
        pdf.set_text_color(0)
        return

    for index, item in enumerate(protocol.channel, 1):
        pdf.line_text(f"{index}. Paar", size=11, style="B")
        pdf.line_text("Stimulation:", style="B")
        pdf.line_text(f"   Anzahl Bewegungen: {item.stimulation.anzahl_bewegungen}")
        pdf.line_text(f"   Geschwindigkeit: {item.stimulation.geschwindigkeit.value}")
        pdf.line_text("Fragment:", style="B")
        pdf.line_text(f"   {item.fragment.text}")
        if item.fragment.einwebung:
            pdf.line_text(f"   -> Einwebung: {item.fragment.einwebung}", size=9)
        if item.fragment.notizen:
            pdf.set_text_color(80)
            pdf.line_text(f"   Notizen: {item.fragment.notizen}", size=9, style="I")
            pdf.set_text_color(0)
        pdf.ln(3)


def _render_sections(pdf: ProtocolPDF, protocol: ProtocolVariant) -> None:
    _, sections = split_protocol(protocol)
    for key, value in sections.items():
        pdf.heading(SECTION_TITLES.get(key, _label(key)))
        if isinstance(value, dict):
            _render_fields(pdf, value)
        elif isinstance(value, list):
            if not value:
                pdf.line_text("-")
            for index, entry in enumerate(value, 1):
                pdf.line_text(f"{index}.", style="B")
                _render_fields(pdf, entry, "   ")
        else:
            pdf.line_text(_format_value(value))


def to_pdf_bytes(protocol: ProtocolVariant, generated_at: datetime | None = None) -> bytes:
    """Render a protocol as a printable PDF document."""
    try:
        pdf = ProtocolPDF(generated_at or datetime.now())
        pdf.add_page()
        _render_metadata(pdf, protocol)
        if isinstance(protocol, StandardProtocol):
            _render_standard(pdf, protocol)
        else:
            _render_sections(pdf, protocol)
        return bytes(pdf.output())
    except (FPDFException, UnicodeError, ValueError) as e:
        logger.error(f"PDF export of protocol {protocol.id} failed: {e}")
        raise ExportError("PDF-Export fehlgeschlagen") from e
