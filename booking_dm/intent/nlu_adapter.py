"""
NLU result adapter

Normalizes the NLU service output (top intent + entity list) into the slot
vocabulary used by the grammar matcher, so downstream logic does not care
where a slot value came from.
"""

import logging
from typing import Any, Dict, Mapping, Optional

from booking_dm.appointment.models import NLUInterpretation, PartialSlots

logger = logging.getLogger(__name__)

# Entity category -> slot name
ENTITY_SLOTS: Mapping[str, str] = {
    "person": "person",
    "meeting_day": "day",
    "day": "day",
    "meeting_time": "time",
    "time": "time",
}


def parse_interpretation(payload: Optional[Dict[str, Any]]) -> Optional[NLUInterpretation]:
    """
    Validate a raw NLU payload.

    Raises:
        pydantic.ValidationError: payload does not follow the wire contract
    """
    if payload is None:
        return None
    return NLUInterpretation.model_validate(payload)


def first_entity_text(interpretation: Optional[NLUInterpretation], category: str) -> Optional[str]:
    """Text of the first entity of `category`, in the order the service returned them"""
    if interpretation is None:
        return None
    for entity in interpretation.entities:
        if entity.category == category and entity.text:
            return entity.text
    return None


def adapt(interpretation: Optional[NLUInterpretation]) -> PartialSlots:
    """
    Extract slot candidates from an interpretation.

    The first entity whose category maps to a slot wins; later entities for
    an already filled slot are ignored.
    """
    if interpretation is None:
        return PartialSlots()

    values: Dict[str, str] = {}
    for entity in interpretation.entities:
        slot = ENTITY_SLOTS.get(entity.category)
        if slot and slot not in values and entity.text:
            values[slot] = entity.text

    return PartialSlots(**values)


def top_intent(interpretation: Optional[NLUInterpretation]) -> Optional[str]:
    return interpretation.top_intent if interpretation else None
