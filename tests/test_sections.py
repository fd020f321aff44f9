"""Tests for list-shaped section editing and draft validation."""

import pytest
from pydantic import ValidationError

from emdr.core.exceptions import (
    DurchgangLimitError,
    InvalidProtocolTypeError,
    ProtocolValidationError,
)
from emdr.editor.defaults import new_draft
from emdr.editor.sections import (
    add_channel_item,
    add_durchgang,
    add_iri_set,
    move_channel_item_down,
    move_channel_item_up,
    remove_channel_item,
    remove_durchgang,
    remove_iri_set,
    update_channel_item,
    update_durchgang,
)
from emdr.editor.validation import ensure_valid, validate_protocol
from emdr.schemas.protocol import (
    CIPOSErsterKontakt,
    CIPOSProtocol,
    ProtocolType,
    SichererOrtProtocol,
    Speed,
    parse_protocol,
)
from tests.conftest import make_standard


@pytest.fixture
def cipos() -> CIPOSProtocol:
    return new_draft(ProtocolType.CIPOS, chiffre="P-001", protokollnummer="1")


def test_new_channel_item_defaults():
    """Test a new pair starts with 24 fast movements."""
    draft = add_channel_item(new_draft())

    item = draft.channel[0]
    assert item.stimulation.anzahl_bewegungen == 24
    assert item.stimulation.geschwindigkeit == Speed.SCHNELL
    assert item.fragment.text == ""


def test_channel_helpers_do_not_mutate():
    """Test helpers return a new draft."""
    draft = new_draft()

    changed = add_channel_item(draft)

    assert draft.channel == []
    assert len(changed.channel) == 1


def test_move_channel_item():
    """Test moving pairs and ignoring moves past either end."""
    draft = add_channel_item(add_channel_item(add_channel_item(new_draft())))
    first, second, third = (item.id for item in draft.channel)

    moved = move_channel_item_up(draft, second)
    assert [i.id for i in moved.channel] == [second, first, third]

    assert move_channel_item_up(draft, first) is draft
    assert move_channel_item_down(draft, third) is draft

    moved = move_channel_item_down(draft, first)
    assert [i.id for i in moved.channel] == [second, first, third]

    with pytest.raises(KeyError):
        move_channel_item_up(draft, "missing")


def test_update_and_remove_channel_item():
    """Test replacing and removing pairs by id."""
    draft = add_channel_item(add_channel_item(new_draft()))
    item = draft.channel[1]
    item.fragment.text = "Neues Fragment"

    updated = update_channel_item(draft, item)
    assert updated.channel[1].fragment.text == "Neues Fragment"

    removed = remove_channel_item(updated, draft.channel[0].id)
    assert [i.id for i in removed.channel] == [item.id]


def test_channel_helper_rejects_other_variant(cipos):
    """Test helpers refuse drafts of the wrong type."""
    with pytest.raises(InvalidProtocolTypeError):
        add_channel_item(cipos)


def test_add_durchgang_limit(cipos):
    """Test at most three passes numbered 1..n."""
    for _ in range(4):
        cipos = add_durchgang(cipos)

    assert [d.durchgang_nummer for d in cipos.durchgaenge] == [1, 2, 3]

    with pytest.raises(DurchgangLimitError):
        add_durchgang(cipos, strict=True)


def test_add_durchgang_inherits_duration(cipos):
    """Test a new pass takes the exposure duration of the first contact."""
    cipos = cipos.model_copy(update={
        "erster_kontakt": CIPOSErsterKontakt(belastungsdauer_sekunden=8),
    })

    cipos = add_durchgang(cipos)

    assert cipos.durchgaenge[0].dauer_sekunden == 8


def test_remove_durchgang_renumbers(cipos):
    """Test removing a pass renumbers the remaining ones."""
    cipos = add_durchgang(add_durchgang(add_durchgang(cipos)))
    first, second, third = cipos.durchgaenge

    cipos = remove_durchgang(cipos, first.id)

    assert [d.id for d in cipos.durchgaenge] == [second.id, third.id]
    assert [d.durchgang_nummer for d in cipos.durchgaenge] == [1, 2]


def test_update_durchgang(cipos):
    """Test updating a pass keeps its position number."""
    cipos = add_durchgang(add_durchgang(cipos))
    durchgang = cipos.durchgaenge[1].model_copy(
        update={"durchgang_nummer": 7, "gegenwartsorientierung_nach": 80}
    )

    cipos = update_durchgang(cipos, durchgang)

    assert cipos.durchgaenge[1].gegenwartsorientierung_nach == 80
    assert cipos.durchgaenge[1].durchgang_nummer == 2


def test_cipos_payload_limits():
    """Test parsed payloads are renumbered and capped at three passes."""
    base = {"chiffre": "P-001", "datum": "2024-03-01", "protocolType": "CIPOS"}

    protocol = parse_protocol({
        **base,
        "durchgaenge": [{"durchgang_nummer": 5}, {"durchgang_nummer": 9}],
    })
    assert [d.durchgang_nummer for d in protocol.durchgaenge] == [1, 2]

    with pytest.raises(ValidationError):
        parse_protocol({**base, "durchgaenge": [{}, {}, {}, {}]})


def test_iri_sets_renumber():
    """Test IRI sets stay numbered by position."""
    draft = add_iri_set(add_iri_set(add_iri_set(new_draft(ProtocolType.IRI))))
    first = draft.bilaterale_stimulation.sets[0]

    draft = remove_iri_set(draft, first.id)

    assert [s.set_nummer for s in draft.bilaterale_stimulation.sets] == [1, 2]


def test_sicherer_ort_branching():
    """Test later sections are shown depending on earlier answers."""
    draft = new_draft(ProtocolType.SICHERER_ORT)
    assert not draft.shows_set2
    assert not draft.shows_wortarbeit

    draft = SichererOrtProtocol.model_validate({
        **draft.model_dump(by_alias=True),
        "set1": {"interpretation_fall": "fall1_weiter"},
        "set2": {"reaktion_nach_set": "negativ"},
    })
    assert draft.shows_set2
    assert not draft.shows_wortarbeit

    draft = draft.model_copy(update={
        "set2": draft.set2.model_copy(update={"reaktion_nach_set": "keine"}),
    })
    assert draft.shows_wortarbeit


def test_validate_complete_protocol():
    """Test a complete standard protocol is valid."""
    result = validate_protocol(make_standard())

    assert result.is_valid
    assert result.missing_fields == []


def test_validate_missing_metadata():
    """Test every missing metadata field is reported at once."""
    draft = new_draft(ProtocolType.IRI).model_copy(update={"datum": ""})

    result = validate_protocol(draft, type_selected=False)

    assert set(result.errors) == {"chiffre", "datum", "protokollnummer", "protocolType"}
    assert set(result.missing_fields) == set(result.errors)


def test_validate_standard_channel():
    """Test the standard variant needs a start node and complete pairs."""
    draft = add_channel_item(new_draft(chiffre="P-001", protokollnummer="1"))
    item = draft.channel[0]
    item.stimulation.anzahl_bewegungen = 0

    result = validate_protocol(update_channel_item(draft, item))

    assert result.errors.keys() == {"startKnoten", "channel_0_anzahl", "channel_0_fragment"}


def test_validate_empty_channel():
    """Test a standard protocol without pairs is rejected."""
    draft = make_standard().model_copy(update={"channel": []})

    with pytest.raises(ProtocolValidationError) as exc_info:
        ensure_valid(draft)

    assert exc_info.value.errors == {"channel": "at least one pair required"}
    assert exc_info.value.missing_fields == ["channel"]


def test_validate_other_variants_need_only_metadata():
    """Test non-standard variants only require metadata."""
    draft = new_draft(ProtocolType.SICHERER_ORT, chiffre="P-001", protokollnummer="1")

    assert validate_protocol(draft).is_valid
