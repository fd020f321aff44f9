"""Protocol schemas: the tagged union over the EMDR protocol forms.

Every variant shares the metadata block. The shape of the remaining
fields is fully determined by ``protocolType``; fields belonging to a
different variant are dropped when a payload is parsed.
"""

import uuid
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, field_validator

from emdr.core.exceptions import InvalidProtocolTypeError


def new_id() -> str:
    """Generate a fresh opaque identifier."""
    return str(uuid.uuid4())


class ProtocolType(str, Enum):
    """Protocol type tag as used on the wire."""

    STANDARD = "Reprozessieren"
    IRI = "IRI"
    CIPOS = "CIPOS"
    SICHERER_ORT = "Sicherer Ort"
    CUSTOM = "Custom"

    @classmethod
    def parse(cls, value: "ProtocolType | str") -> "ProtocolType":
        """Resolve a tag, accepting the enum names used internally."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            pass
        aliases = {
            "Standard": cls.STANDARD,
            "SichererOrt": cls.SICHERER_ORT,
        }
        if value in aliases:
            return aliases[value]
        raise InvalidProtocolTypeError(value)


class Speed(str, Enum):
    """Bilateral stimulation speed for reprocessing sets."""

    LANGSAM = "langsam"
    SCHNELL = "schnell"


DEFAULT_ANZAHL_BEWEGUNGEN = 24
DEFAULT_SPEED = Speed.SCHNELL
MAX_CIPOS_DURCHGAENGE = 3

# Fields shared by all variants (python attribute names)
METADATA_FIELDS = (
    "id",
    "chiffre",
    "datum",
    "protokollnummer",
    "protocol_type",
    "created_at",
    "last_modified",
)


class ProtocolMetadata(BaseModel):
    """Metadata block shared by every protocol variant."""

    id: str = ""
    chiffre: str = ""
    datum: str = ""  # ISO date YYYY-MM-DD
    protokollnummer: str = ""
    created_at: int | None = Field(None, alias="createdAt")  # Unix ms
    last_modified: int | None = Field(None, alias="lastModified")  # Unix ms

    model_config = {"populate_by_name": True, "extra": "ignore"}


# =============================================================
# Standard (Reprozessieren / Custom)
# =============================================================


class Stimulation(BaseModel):
    """Stimulation part of a channel item."""

    id: str = Field(default_factory=new_id)
    anzahl_bewegungen: int = Field(DEFAULT_ANZAHL_BEWEGUNGEN, alias="anzahlBewegungen")
    geschwindigkeit: Speed = DEFAULT_SPEED

    model_config = {"populate_by_name": True}


class Fragment(BaseModel):
    """Fragment reported after a stimulation set."""

    id: str = Field(default_factory=new_id)
    text: str = ""
    einwebung: str | None = None
    notizen: str | None = None


class ChannelItem(BaseModel):
    """One stimulation/fragment pair of the processing channel."""

    id: str = Field(default_factory=new_id)
    stimulation: Stimulation = Field(default_factory=Stimulation)
    fragment: Fragment = Field(default_factory=Fragment)


class StandardProtocol(ProtocolMetadata):
    """Standard reprocessing protocol. Also used for custom protocols."""

    protocol_type: Literal["Reprozessieren", "Custom"] = Field(
        "Reprozessieren", alias="protocolType"
    )
    start_knoten: str = Field("", alias="startKnoten")
    channel: list[ChannelItem] = Field(default_factory=list)


# =============================================================
# IRI
# =============================================================

IndikationOption = Literal[
    "bindungsdefizite",
    "schwierigkeiten_ressourcen",
    "wenig_ressourcen",
    "erhoehte_anspannung",
    "sonstiges",
]
KoerperlokalisationOption = Literal[
    "kopf",
    "hals_nacken",
    "brustkorb",
    "bauch",
    "ruecken",
    "arme_haende",
    "beine_fuesse",
    "ganzkoerper",
    "sonstiges",
]
KoerperempfindungQualitaet = Literal[
    "warm", "weit", "leicht", "ruhig", "kraftvoll", "lebendig", "sonstiges"
]
StimulationTyp = Literal["visuell", "taktil", "auditiv", "kombination"]
SetGeschwindigkeit = Literal["langsam", "mittel", "eher_schnell"]


class IRIIndikation(BaseModel):
    """IRI section 2: indication and starting point."""

    indikation_checklist: list[IndikationOption] = Field(default_factory=list)
    indikation_sonstiges: str | None = None
    ausgangszustand_beschreibung: str = ""
    ziel_der_iri: str = ""


class IRIPositiverMoment(BaseModel):
    """IRI section 3: trigger of the resource."""

    positiver_moment_beschreibung: str = ""
    kontext_positiver_moment: str = ""
    wahrgenommene_positive_veraenderung: str = ""
    veraenderung_mimik: str | None = None
    veraenderung_verbale_ausdrucksweise: str | None = None
    veraenderung_koerperhaltung: str | None = None


class IRIKoerperwahrnehmung(BaseModel):
    """IRI section 4: body perception."""

    koerperwahrnehmung_rohtext: str = ""
    koerperlokalisation: list[KoerperlokalisationOption] = Field(default_factory=list)
    koerperlokalisation_sonstiges: str | None = None
    qualitaet_koerperempfindung: list[KoerperempfindungQualitaet] = Field(
        default_factory=list
    )
    qualitaet_sonstiges: str | None = None


class IRIStimulationSet(BaseModel):
    """Single bilateral stimulation set with its own LOPE rating."""

    id: str = Field(default_factory=new_id)
    set_nummer: int = 1
    set_dauer: str | None = None
    set_geschwindigkeit: SetGeschwindigkeit = "langsam"
    set_anzahl_durchgaenge: int | None = None
    instruktion_text: str | None = None
    subjektive_wahrnehmung_nach_set: str | None = None
    lope_nach_set: int | None = Field(None, ge=0, le=10)


class IRIBilateraleStimulation(BaseModel):
    """IRI section 6: bilateral stimulation."""

    stimulation_typ: StimulationTyp = "visuell"
    stimulation_typ_sonstiges: str | None = None
    stimulation_bemerkungen_allgemein: str | None = None
    sets: list[IRIStimulationSet] = Field(default_factory=list)


class IRIRessourcenEinschaetzung(BaseModel):
    """IRI section 8: assessment of the resource (1-5 scales)."""

    ressource_spuerbarkeit: int | None = Field(None, ge=1, le=5)
    ressource_erreichbarkeit_im_alltag: int | None = Field(None, ge=1, le=5)
    anker_fuer_alltag: str | None = None
    vereinbarte_hausaufgabe: str | None = None
    bemerkungen_risiko_stabilitaet: str | None = None


class IRIAbschluss(BaseModel):
    """IRI sections 9 and 10: reflection and consent."""

    therapeut_reflexion: str | None = None
    naechste_schritte_behandlung: str | None = None
    einwilligung_dokumentation: bool = False
    signatur_therapeut: str | None = None


class IRIProtocol(ProtocolMetadata):
    """Integration of resources (IRI) protocol."""

    protocol_type: Literal["IRI"] = Field("IRI", alias="protocolType")
    indikation: IRIIndikation = Field(default_factory=IRIIndikation)
    positiver_moment: IRIPositiverMoment = Field(default_factory=IRIPositiverMoment)
    koerperwahrnehmung: IRIKoerperwahrnehmung = Field(
        default_factory=IRIKoerperwahrnehmung
    )
    lope_vorher: int | None = Field(None, ge=0, le=10)
    bilaterale_stimulation: IRIBilateraleStimulation = Field(
        default_factory=IRIBilateraleStimulation
    )
    lope_nachher: int | None = Field(None, ge=0, le=10)
    ressourcen_einschaetzung: IRIRessourcenEinschaetzung = Field(
        default_factory=IRIRessourcenEinschaetzung
    )
    abschluss: IRIAbschluss = Field(default_factory=IRIAbschluss)


# =============================================================
# CIPOS
# =============================================================

CIPOSStimulationMethode = Literal["visuell", "taktil", "auditiv", "kombination"]
ReorientierungsMethode = Literal[
    "gegenstaende_benennen",
    "rueckwaerts_rechnen",
    "sensorische_uebungen",
    "fuenf_vier_drei_zwei_eins",
    "blickkontakt",
    "atemuebung",
    "koerperwahrnehmung",
    "orientierung_raum",
    "fuesse_boden",
    "kaltes_wasser",
    "starke_sinnesreize",
    "bilaterale_stimulation",
    "safe_place",
    "bewegung_aufstehen",
    "selbstberuehrung",
    "sonstiges",
]


class CIPOSGegenwartsorientierungVorher(BaseModel):
    """CIPOS section 2: present orientation before starting."""

    prozent_gegenwartsorientierung: int = Field(50, ge=0, le=100)
    indikatoren_patient: str = ""
    beobachtungen_therapeut: str | None = None


class CIPOSVerstaerkungGegenwart(BaseModel):
    """CIPOS section 3: strengthening the safe present."""

    stimulation_methode: CIPOSStimulationMethode = "visuell"
    stimulation_methode_sonstiges: str | None = None
    dauer_anzahl_sets: str = ""
    reaktion_verbesserung: bool | None = None
    gegenwartsorientierung_nach_stimulation: int = Field(50, ge=0, le=100)
    kommentar: str | None = None


class CIPOSErsterKontakt(BaseModel):
    """CIPOS section 4: first contact with the distressing memory."""

    zielerinnerung_beschreibung: str = ""
    sud_vor_kontakt: int = Field(5, ge=0, le=10)
    belastungsdauer_sekunden: int = Field(5, ge=3, le=10)


class CIPOSDurchgang(BaseModel):
    """One exposure pass. ``durchgang_nummer`` mirrors the list position."""

    id: str = Field(default_factory=new_id)
    durchgang_nummer: int = 1
    bereitschaft_patient: bool | None = None
    bereitschaft_kommentar: str | None = None
    zaehl_technik: bool | None = None
    dauer_sekunden: int = Field(5, ge=3, le=10)
    reorientierung_methoden: list[ReorientierungsMethode] = Field(default_factory=list)
    reorientierung_sonstiges: str | None = None
    reorientierung_freitext: str | None = None
    gegenwartsorientierung_nach: int = Field(50, ge=0, le=100)
    stimulation_verstaerkung: bool | None = None
    kommentar: str | None = None


class CIPOSAbschlussbewertung(BaseModel):
    """CIPOS section 7: final assessment."""

    sud_nach_letztem_durchgang: int = Field(5, ge=0, le=10)
    rueckmeldung_erinnerung: str | None = None
    rueckmeldung_koerper: str | None = None
    subjektive_sicherheit: int | None = Field(None, ge=0, le=100)


class CIPOSNachbesprechung(BaseModel):
    """CIPOS section 8: debriefing."""

    nachbesprechung_durchgefuehrt: bool | None = None
    hinweis_inneres_prozessieren: bool | None = None
    aufgabe_tagebuch: str | None = None
    beobachtungen_therapeut: str | None = None


class CIPOSSchwierigkeiten(BaseModel):
    """CIPOS section 9: difficulties."""

    probleme_reorientierung: bool | None = None
    stabilisierungstechniken: str | None = None
    cipos_vorzeitig_beendet: bool | None = None
    cipos_vorzeitig_grund: str | None = None


class CIPOSAbschlussDokumentation(BaseModel):
    """CIPOS section 10: closing the documentation."""

    gesamteinschaetzung_therapeut: str | None = None
    planung_naechste_sitzung: str | None = None
    signatur_therapeut: str | None = None


class CIPOSProtocol(ProtocolMetadata):
    """Constant installation of present orientation and safety (CIPOS)."""

    protocol_type: Literal["CIPOS"] = Field("CIPOS", alias="protocolType")
    gegenwartsorientierung_vorher: CIPOSGegenwartsorientierungVorher = Field(
        default_factory=CIPOSGegenwartsorientierungVorher
    )
    verstaerkung_gegenwart: CIPOSVerstaerkungGegenwart = Field(
        default_factory=CIPOSVerstaerkungGegenwart
    )
    erster_kontakt: CIPOSErsterKontakt = Field(default_factory=CIPOSErsterKontakt)
    durchgaenge: list[CIPOSDurchgang] = Field(
        default_factory=list, max_length=MAX_CIPOS_DURCHGAENGE
    )
    abschlussbewertung: CIPOSAbschlussbewertung = Field(
        default_factory=CIPOSAbschlussbewertung
    )
    nachbesprechung: CIPOSNachbesprechung = Field(default_factory=CIPOSNachbesprechung)
    schwierigkeiten: CIPOSSchwierigkeiten = Field(default_factory=CIPOSSchwierigkeiten)
    abschluss_dokumentation: CIPOSAbschlussDokumentation = Field(
        default_factory=CIPOSAbschlussDokumentation
    )

    @field_validator("durchgaenge")
    @classmethod
    def renumber_durchgaenge(cls, v: list[CIPOSDurchgang]) -> list[CIPOSDurchgang]:
        """Keep pass numbers equal to their 1-based position."""
        return [d.model_copy(update={"durchgang_nummer": i}) for i, d in enumerate(v, 1)]


# =============================================================
# Sicherer Ort
# =============================================================

OrtTyp = Literal["real", "imaginaer"]
SichererOrtStimulationTyp = Literal["augenbewegungen", "taps", "auditiv", "anderes"]
BLSReaktion = Literal["positiv", "keine", "negativ"]
InterpretationFall = Literal["fall1_weiter", "fall2_abbruch"]
Fall2Grund = Literal[
    "ort_ungeeignet", "stimulation_nicht_tolerierbar", "weitere_stabilisierung"
]
SubjektiverZustand = Literal[
    "ruhiger", "verbundener", "stabiler", "unveraendert", "belasteter"
]
EignungEinschaetzung = Literal["geeignet", "bedingt_geeignet", "nicht_geeignet"]


class SichererOrtEinfuehrung(BaseModel):
    """Introduction and psychoeducation."""

    einbettung_kurzbeschreibung: str = ""
    psychoedukation_gegeben: Literal["ja", "nein"] | None = None
    psychoedukation_kommentar: str | None = None
    anker_konzept_erklaert: bool | None = None


class SichererOrtFindung(BaseModel):
    """Finding the safe place."""

    ort_typ: OrtTyp | None = None
    ort_nennung: str = ""
    gefuehl_beim_ort: str = ""
    koerperstelle_gefuehl: str = ""


class SichererOrtSet1(BaseModel):
    """First BLS set and its interpretation."""

    bls_durchgefuehrt: bool | None = None
    stimulation_art: SichererOrtStimulationTyp | None = None
    stimulation_art_sonstiges: str | None = None
    reaktion_nach_set: BLSReaktion | None = None
    reaktion_beschreibung: str = ""
    interpretation_fall: InterpretationFall | None = None
    fall2_grund: Fall2Grund | None = None
    fall2_kommentar: str | None = None


class SichererOrtSet2(BaseModel):
    """Second BLS set, only relevant when the first set continued."""

    bls_durchgefuehrt: bool | None = None
    stimulation_art: SichererOrtStimulationTyp | None = None
    stimulation_art_sonstiges: str | None = None
    reaktion_nach_set: BLSReaktion | None = None


class SichererOrtWortarbeit(BaseModel):
    """Cue word work (sets 3 and 4)."""

    wort_fuer_ort: str = ""
    set3_bls_durchgefuehrt: bool | None = None
    set3_patient_denkt_wort_ort: bool | None = None
    set3_reaktion: str = ""
    set4_durchgefuehrt: bool | None = None


class SichererOrtTransfer(BaseModel):
    """Self-guided transfer into daily life."""

    anleitung_durchgefuehrt: bool | None = None
    patient_erreicht_ort: Literal["ja", "teilweise", "nein"] | None = None
    reaktion_beschreibung: str = ""
    alltag_nutzbar: Literal["ja", "nein", "unsicher"] | None = None
    alltag_hinweise: str = ""


class SichererOrtAbschluss(BaseModel):
    """Closing state of the patient."""

    subjektiver_zustand: list[SubjektiverZustand] = Field(default_factory=list)
    koerperliche_wahrnehmung: str = ""
    stabilisierung_ausreichend: bool | None = None


class SichererOrtEinschaetzung(BaseModel):
    """Therapeutic assessment."""

    eignung_sicherer_ort: EignungEinschaetzung | None = None
    besondere_beobachtungen: str = ""
    planung_weitere_sitzungen: str = ""


class SichererOrtProtocol(ProtocolMetadata):
    """Safe place (Sicherer Ort) protocol.

    Later sections are only relevant depending on earlier answers. That
    branching is exposed through ``shows_set2``/``shows_wortarbeit`` and
    never enforced on stored data.
    """

    protocol_type: Literal["Sicherer Ort"] = Field("Sicherer Ort", alias="protocolType")
    einfuehrung: SichererOrtEinfuehrung = Field(default_factory=SichererOrtEinfuehrung)
    findung: SichererOrtFindung = Field(default_factory=SichererOrtFindung)
    set1: SichererOrtSet1 = Field(default_factory=SichererOrtSet1)
    set2: SichererOrtSet2 = Field(default_factory=SichererOrtSet2)
    wortarbeit: SichererOrtWortarbeit = Field(default_factory=SichererOrtWortarbeit)
    transfer: SichererOrtTransfer = Field(default_factory=SichererOrtTransfer)
    abschluss: SichererOrtAbschluss = Field(default_factory=SichererOrtAbschluss)
    therapeutische_einschaetzung: SichererOrtEinschaetzung = Field(
        default_factory=SichererOrtEinschaetzung
    )

    @property
    def shows_set2(self) -> bool:
        """Set 2 follows only when set 1 was interpreted as 'continue'."""
        return self.set1.interpretation_fall == "fall1_weiter"

    @property
    def shows_wortarbeit(self) -> bool:
        """Word work follows a positive or neutral second set."""
        return self.shows_set2 and self.set2.reaktion_nach_set in ("positiv", "keine")


# =============================================================
# Union
# =============================================================

ProtocolVariant = Union[StandardProtocol, IRIProtocol, CIPOSProtocol, SichererOrtProtocol]

AnyProtocol = Annotated[ProtocolVariant, Field(discriminator="protocol_type")]

protocol_adapter: TypeAdapter[ProtocolVariant] = TypeAdapter(AnyProtocol)

VARIANT_MODELS: dict[ProtocolType, type[ProtocolMetadata]] = {
    ProtocolType.STANDARD: StandardProtocol,
    ProtocolType.CUSTOM: StandardProtocol,
    ProtocolType.IRI: IRIProtocol,
    ProtocolType.CIPOS: CIPOSProtocol,
    ProtocolType.SICHERER_ORT: SichererOrtProtocol,
}


def model_for(protocol_type: ProtocolType | str) -> type[ProtocolMetadata]:
    """Get the variant model class for a type tag."""
    return VARIANT_MODELS[ProtocolType.parse(protocol_type)]


def parse_protocol(data: dict[str, Any]) -> ProtocolVariant:
    """Validate a raw payload into its variant model.

    Raises pydantic ``ValidationError`` for malformed payloads and
    ``InvalidProtocolTypeError`` for unknown tags.
    """
    payload = dict(data)
    raw_type = payload.get("protocolType", payload.get("protocol_type"))
    if raw_type is None:
        raise InvalidProtocolTypeError(raw_type)
    payload.pop("protocol_type", None)
    payload["protocolType"] = ProtocolType.parse(raw_type).value
    return protocol_adapter.validate_python(payload)


def dump_protocol(protocol: ProtocolVariant) -> dict[str, Any]:
    """Serialize a protocol to its JSON wire form."""
    return protocol.model_dump(mode="json", by_alias=True)


def split_protocol(protocol: ProtocolVariant) -> tuple[dict[str, Any], dict[str, Any]]:
    """Split a protocol into (metadata, type-specific sections) wire dicts."""
    metadata = protocol.model_dump(
        mode="json", by_alias=True, include=set(METADATA_FIELDS)
    )
    sections = protocol.model_dump(
        mode="json", by_alias=True, exclude=set(METADATA_FIELDS)
    )
    return metadata, sections


class ProtocolListItem(BaseModel):
    """Summary projection of a protocol for list views."""

    id: str
    chiffre: str
    datum: str
    protokollnummer: str
    protocol_type: ProtocolType = Field(..., alias="protocolType")
    last_modified: int = Field(..., alias="lastModified")

    model_config = {"populate_by_name": True, "from_attributes": True}

    @classmethod
    def from_protocol(cls, protocol: ProtocolVariant) -> "ProtocolListItem":
        """Derive the summary from a full protocol."""
        return cls(
            id=protocol.id,
            chiffre=protocol.chiffre,
            datum=protocol.datum,
            protokollnummer=protocol.protokollnummer,
            protocol_type=ProtocolType.parse(protocol.protocol_type),
            last_modified=protocol.last_modified or 0,
        )
