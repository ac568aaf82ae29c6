"""
Grammar matcher for the Booking Dialogue Manager

Maps canonical utterances to partial slot records. The table is
configuration data: swap it with `Grammar(table)` or `Grammar.from_json(path)`
without touching the state machine.
"""

import json
import logging
import re
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from booking_dm.appointment.models import Confirmation, GrammarEntry

logger = logging.getLogger(__name__)

WHITESPACE = re.compile(r"\s+")


# ============================================================================
# Default grammar table
# ============================================================================

_DEFAULT_TABLE: Dict[str, GrammarEntry] = {
    # People
    "vlad": GrammarEntry(person="Vladislav Maraev"),
    "aya": GrammarEntry(person="Nayat Astaiza Soriano"),
    "victoria": GrammarEntry(person="Victoria Daniilidou"),
    "bella": GrammarEntry(person="Bella Du"),
    "xin": GrammarEntry(person="Xin Bian"),
    "jennie": GrammarEntry(person="Jennie Kim"),
    "rosé": GrammarEntry(person="Rosé"),
    "taylor": GrammarEntry(person="Taylor"),

    # Days
    "monday": GrammarEntry(day="Monday"),
    "tuesday": GrammarEntry(day="Tuesday"),
    "wednesday": GrammarEntry(day="Wednesday"),
    "thursday": GrammarEntry(day="Thursday"),
    "friday": GrammarEntry(day="Friday"),
    "today": GrammarEntry(day="Today"),
    "tomorrow": GrammarEntry(day="Tomorrow"),
    "next": GrammarEntry(day="Next week"),

    # Times
    "10": GrammarEntry(time="10:00"),
    "11": GrammarEntry(time="11:00"),
    "12": GrammarEntry(time="12:00"),
    "13": GrammarEntry(time="13:00"),
    "15": GrammarEntry(time="15:00"),
    "17": GrammarEntry(time="17:00"),
    "morning": GrammarEntry(time="9:00"),
    "afternoon": GrammarEntry(time="14:30"),
    "evening": GrammarEntry(time="19:00"),

    # Confirmation
    "yes": GrammarEntry(confirmation=Confirmation.AFFIRMED),
    "of course": GrammarEntry(confirmation=Confirmation.AFFIRMED),
    "sure": GrammarEntry(confirmation=Confirmation.AFFIRMED),
    "absolutely": GrammarEntry(confirmation=Confirmation.AFFIRMED),
    "no": GrammarEntry(confirmation=Confirmation.DENIED),
    "no way": GrammarEntry(confirmation=Confirmation.DENIED),
}


def canonicalize(utterance: str) -> str:
    """
    Canonical form used as the grammar key.

    Lower-cases, strips, and collapses each run of internal whitespace
    to a single space ("Of   Course " -> "of course").
    """
    if not utterance:
        return ""
    return WHITESPACE.sub(" ", utterance.strip().lower())


class Grammar:
    """Read-only phrase table with exact-match lookup on canonical keys"""

    def __init__(self, table: Mapping[str, GrammarEntry]):
        self._table = MappingProxyType({canonicalize(k): v for k, v in table.items()})

    @classmethod
    def from_json(cls, path: str) -> "Grammar":
        """
        Load a grammar from a JSON object of phrase -> partial record.

        Example:
            {"vlad": {"person": "Vladislav Maraev"}, "yes": {"confirmation": true}}
        """
        with open(path, encoding="utf-8") as fh:
            raw: Dict[str, Dict[str, Any]] = json.load(fh)

        table = {}
        for phrase, values in raw.items():
            table[phrase] = GrammarEntry(
                person=values.get("person"),
                day=values.get("day"),
                time=values.get("time"),
                confirmation=Confirmation.from_bool(values.get("confirmation")),
            )
        logger.info(f" Grammar loaded from {path}: {len(table)} phrases")
        return cls(table)

    @property
    def table(self) -> Mapping[str, GrammarEntry]:
        return self._table

    def __len__(self) -> int:
        return len(self._table)

    def lookup(self, utterance: str) -> Optional[GrammarEntry]:
        return self._table.get(canonicalize(utterance))

    def is_known(self, utterance: str) -> bool:
        return self.lookup(utterance) is not None

    def person(self, utterance: str) -> Optional[str]:
        entry = self.lookup(utterance)
        return entry.person if entry else None

    def day(self, utterance: str) -> Optional[str]:
        entry = self.lookup(utterance)
        return entry.day if entry else None

    def time(self, utterance: str) -> Optional[str]:
        entry = self.lookup(utterance)
        return entry.time if entry else None

    def confirmation(self, utterance: str) -> Optional[Confirmation]:
        entry = self.lookup(utterance)
        return entry.confirmation if entry else None


DEFAULT_GRAMMAR = Grammar(_DEFAULT_TABLE)


# Module-level helpers over the default grammar

def lookup(utterance: str) -> Optional[GrammarEntry]:
    return DEFAULT_GRAMMAR.lookup(utterance)


def is_known(utterance: str) -> bool:
    return DEFAULT_GRAMMAR.is_known(utterance)


def person(utterance: str) -> Optional[str]:
    return DEFAULT_GRAMMAR.person(utterance)


def day(utterance: str) -> Optional[str]:
    return DEFAULT_GRAMMAR.day(utterance)


def time(utterance: str) -> Optional[str]:
    return DEFAULT_GRAMMAR.time(utterance)


def confirmation(utterance: str) -> Optional[Confirmation]:
    return DEFAULT_GRAMMAR.confirmation(utterance)
