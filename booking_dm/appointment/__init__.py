"""
Appointment dialogue for the Booking Dialogue Manager

Grammar matcher, slot aggregation, turn state machine and the FastAPI
service hosting one live dialogue.

Reference:
    booking_dm.orchestrator.runner - drives the machine against a speech boundary
"""

__version__ = "1.0.0"
