"""Editing helpers for list-shaped protocol sections.

Each helper returns a new draft and leaves the given one untouched.
"""

from typing import Any

from emdr.core.exceptions import DurchgangLimitError, InvalidProtocolTypeError
from emdr.schemas.protocol import (
    MAX_CIPOS_DURCHGAENGE,
    ChannelItem,
    CIPOSDurchgang,
    CIPOSProtocol,
    IRIProtocol,
    IRIStimulationSet,
    ProtocolVariant,
    StandardProtocol,
)


def _require(draft: ProtocolVariant, model: type) -> None:
    if not isinstance(draft, model):
        raise InvalidProtocolTypeError(draft.protocol_type)


def _replace(items: list, item_id: str, changes: dict[str, Any]) -> list:
    found = False
    result = []
    for item in items:
        if item.id == item_id:
            item = item.model_copy(update=changes)
            found = True
        result.append(item)
    if not found:
        raise KeyError(item_id)
    return result


# Channel (Standard / Custom)


def add_channel_item(draft: StandardProtocol) -> StandardProtocol:
    """Append a stimulation/fragment pair with default stimulation."""
    _require(draft, StandardProtocol)
    return draft.model_copy(update={"channel": [*draft.channel, ChannelItem()]})


def update_channel_item(draft: StandardProtocol, item: ChannelItem) -> StandardProtocol:
    """Replace the pair with the same id."""
    _require(draft, StandardProtocol)
    return draft.model_copy(
        update={"channel": _replace(draft.channel, item.id, dict(item))}
    )


def remove_channel_item(draft: StandardProtocol, item_id: str) -> StandardProtocol:
    _require(draft, StandardProtocol)
    return draft.model_copy(
        update={"channel": [i for i in draft.channel if i.id != item_id]}
    )


def move_channel_item(draft: StandardProtocol, item_id: str, offset: int) -> StandardProtocol:
    """Move a pair by ``offset`` positions. Moves past either end are ignored."""
    _require(draft, StandardProtocol)
    channel = list(draft.channel)
    index = next((n for n, i in enumerate(channel) if i.id == item_id), None)
    if index is None:
        raise KeyError(item_id)
    target = index + offset
    if target < 0 or target >= len(channel):
        return draft
    channel.insert(target, channel.pop(index))
    return draft.model_copy(update={"channel": channel})


def move_channel_item_up(draft: StandardProtocol, item_id: str) -> StandardProtocol:
    return move_channel_item(draft, item_id, -1)


def move_channel_item_down(draft: StandardProtocol, item_id: str) -> StandardProtocol:
    return move_channel_item(draft, item_id, 1)


# IRI stimulation sets


def _with_iri_sets(draft: IRIProtocol, sets: list[IRIStimulationSet]) -> IRIProtocol:
    renumbered = [s.model_copy(update={"set_nummer": n}) for n, s in enumerate(sets, 1)]
    stimulation = draft.bilaterale_stimulation.model_copy(update={"sets": renumbered})
    return draft.model_copy(update={"bilaterale_stimulation": stimulation})


def add_iri_set(draft: IRIProtocol) -> IRIProtocol:
    _require(draft, IRIProtocol)
    sets = draft.bilaterale_stimulation.sets
    return _with_iri_sets(draft, [*sets, IRIStimulationSet(set_nummer=len(sets) + 1)])


def update_iri_set(draft: IRIProtocol, stimulation_set: IRIStimulationSet) -> IRIProtocol:
    _require(draft, IRIProtocol)
    sets = _replace(
        draft.bilaterale_stimulation.sets, stimulation_set.id, dict(stimulation_set)
    )
    return _with_iri_sets(draft, sets)


def remove_iri_set(draft: IRIProtocol, set_id: str) -> IRIProtocol:
    _require(draft, IRIProtocol)
    sets = [s for s in draft.bilaterale_stimulation.sets if s.id != set_id]
    return _with_iri_sets(draft, sets)


# CIPOS passes


def _with_durchgaenge(draft: CIPOSProtocol, passes: list[CIPOSDurchgang]) -> CIPOSProtocol:
    renumbered = [d.model_copy(update={"durchgang_nummer": n}) for n, d in enumerate(passes, 1)]
    return draft.model_copy(update={"durchgaenge": renumbered})


def add_durchgang(draft: CIPOSProtocol, strict: bool = False) -> CIPOSProtocol:
    """Append a pass inheriting the exposure duration of the first contact.

    At the limit the draft is returned unchanged, or ``DurchgangLimitError``
    is raised when ``strict`` is set.
    """
    _require(draft, CIPOSProtocol)
    if len(draft.durchgaenge) >= MAX_CIPOS_DURCHGAENGE:
        if strict:
            raise DurchgangLimitError(
                f"Maximal {MAX_CIPOS_DURCHGAENGE} Durchgänge pro CIPOS-Protokoll"
            )
        return draft
    durchgang = CIPOSDurchgang(
        durchgang_nummer=len(draft.durchgaenge) + 1,
        dauer_sekunden=draft.erster_kontakt.belastungsdauer_sekunden or 5,
    )
    return _with_durchgaenge(draft, [*draft.durchgaenge, durchgang])


def update_durchgang(draft: CIPOSProtocol, durchgang: CIPOSDurchgang) -> CIPOSProtocol:
    _require(draft, CIPOSProtocol)
    return _with_durchgaenge(
        draft, _replace(draft.durchgaenge, durchgang.id, dict(durchgang))
    )


def remove_durchgang(draft: CIPOSProtocol, durchgang_id: str) -> CIPOSProtocol:
    _require(draft, CIPOSProtocol)
    return _with_durchgaenge(
        draft, [d for d in draft.durchgaenge if d.id != durchgang_id]
    )
