"""
Slot aggregation for the Booking Dialogue Manager

Merges the slot candidate of one turn into the running dialogue record.
A slot is overwritten only when the turn actually produced a value for it.
"""

from dataclasses import replace

from booking_dm.appointment.models import DialogueRecord, PartialSlots, SLOT_FIELDS


def _is_set(value) -> bool:
    return value is not None and value != ""


def merge(record: DialogueRecord, candidate: PartialSlots) -> DialogueRecord:
    """
    Field-wise carry-forward merge.

    Args:
        record: Current dialogue record
        candidate: Slot values extracted this turn

    Returns:
        New record; the input record is not modified
    """
    updates = {
        name: getattr(candidate, name)
        for name in SLOT_FIELDS
        if _is_set(getattr(candidate, name))
    }
    if not updates:
        return record
    return replace(record, **updates)


def combine(primary: PartialSlots, fallback: PartialSlots) -> PartialSlots:
    """Candidate with `primary` values, gaps filled from `fallback`."""
    values = {}
    for name in SLOT_FIELDS:
        value = getattr(primary, name)
        values[name] = value if _is_set(value) else getattr(fallback, name)
    return PartialSlots(**values)


def fresh_record() -> DialogueRecord:
    """Empty record for a new task instance"""
    return DialogueRecord()
