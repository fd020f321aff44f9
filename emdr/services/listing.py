"""Filtering, searching and grouping of protocol summaries.

All functions are pure and work on any list of ``ProtocolListItem``.
"""

import re
import unicodedata
from dataclasses import dataclass, field
from typing import Iterable

from emdr.schemas.protocol import ProtocolListItem, ProtocolType

ALL_TYPES = "all"


@dataclass
class ProtocolGroup:
    """Protocols sharing one chiffre."""

    chiffre: str
    protocols: list[ProtocolListItem] = field(default_factory=list)


def collation_key(value: str) -> tuple[str, str]:
    """Locale-style sort key: accents and case ignored first, raw value breaks ties."""
    decomposed = unicodedata.normalize("NFKD", value)
    primary = "".join(c for c in decomposed if not unicodedata.combining(c)).casefold()
    return primary, value


def protokollnummer_value(value: str) -> int:
    """Numeric value of a protocol number with non-digits stripped (0 if none)."""
    digits = re.sub(r"\D", "", value)
    return int(digits) if digits else 0


def filter_by_type(
    items: Iterable[ProtocolListItem],
    protocol_type: ProtocolType | str = ALL_TYPES,
) -> list[ProtocolListItem]:
    """Keep items of one type; ``"all"`` keeps everything."""
    if protocol_type == ALL_TYPES:
        return list(items)
    wanted = ProtocolType.parse(protocol_type)
    return [item for item in items if item.protocol_type == wanted]


def search(items: Iterable[ProtocolListItem], term: str | None) -> list[ProtocolListItem]:
    """Case-insensitive substring match on chiffre OR protokollnummer."""
    if not term or not term.strip():
        return list(items)
    needle = term.strip().lower()
    return [
        item
        for item in items
        if needle in item.chiffre.lower() or needle in item.protokollnummer.lower()
    ]


def filter_protocols(
    items: Iterable[ProtocolListItem],
    protocol_type: ProtocolType | str = ALL_TYPES,
    term: str | None = None,
) -> list[ProtocolListItem]:
    """Apply the type filter, then the search."""
    return search(filter_by_type(items, protocol_type), term)


def group_by_chiffre(items: Iterable[ProtocolListItem]) -> list[ProtocolGroup]:
    """Group by exact chiffre and order groups and their members."""
    groups: dict[str, ProtocolGroup] = {}
    for item in items:
        groups.setdefault(item.chiffre, ProtocolGroup(chiffre=item.chiffre)).protocols.append(item)

    ordered = sorted(groups.values(), key=lambda g: collation_key(g.chiffre))
    for group in ordered:
        group.protocols.sort(
            key=lambda p: (
                protokollnummer_value(p.protokollnummer),
                collation_key(p.protokollnummer),
            )
        )
    return ordered


def count_by_type(items: Iterable[ProtocolListItem]) -> dict[str, int]:
    """Number of protocols per type tag, every tag included."""
    counts = {t.value: 0 for t in ProtocolType}
    for item in items:
        counts[ProtocolType.parse(item.protocol_type).value] += 1
    return counts


class ExpansionState:
    """Which chiffre groups are expanded in the list view."""

    def __init__(self) -> None:
        self.expanded: set[str] = set()

    def is_expanded(self, chiffre: str) -> bool:
        return chiffre in self.expanded

    def toggle(self, chiffre: str) -> bool:
        """Flip one group. Returns the new state."""
        if chiffre in self.expanded:
            self.expanded.discard(chiffre)
            return False
        self.expanded.add(chiffre)
        return True

    def toggle_all(self, chiffres: Iterable[str]) -> None:
        """Expand all groups unless all are already expanded, then collapse all."""
        chiffres = set(chiffres)
        if chiffres and chiffres <= self.expanded:
            self.expanded -= chiffres
        else:
            self.expanded |= chiffres
