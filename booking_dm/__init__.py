"""
Booking Dialogue Manager Package

Turn-based task dialogue manager for a spoken appointment-booking
(and simple who-is question answering) interaction.

Subpackages:
    shared: Event/command vocabulary and Redis Streams transport
    appointment: Grammar, slot aggregation, turn state machine, HTTP surface
    intent: NLU result adapter, intent router, local pattern interpreter
    orchestrator: Dialogue runner and speech boundary adapters
"""

__version__ = "1.0.0"

__all__ = ["shared", "appointment", "intent", "orchestrator"]
