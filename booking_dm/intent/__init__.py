"""
Intent handling for the Booking Dialogue Manager

NLU result adapter, intent router and a local pattern interpreter.
"""

from .nlu_adapter import adapt, parse_interpretation, top_intent
from .pattern_interpreter import PatternInterpreter
from .router import Route, route

__all__ = [
    "adapt",
    "parse_interpretation",
    "top_intent",
    "PatternInterpreter",
    "Route",
    "route",
]
