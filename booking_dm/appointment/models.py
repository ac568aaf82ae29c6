"""
Data models for the Booking Dialogue Manager

Contains enums, dataclasses for the dialogue record and slot candidates,
pydantic models for the NLU wire contract, and pydantic models for the API.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Enums
# ============================================================================

class Confirmation(Enum):
    """Yes/no answer carried by a grammar entry. Unset is represented by None."""
    AFFIRMED = "affirmed"
    DENIED = "denied"

    @classmethod
    def from_bool(cls, value: Optional[bool]) -> Optional["Confirmation"]:
        if value is None:
            return None
        return cls.AFFIRMED if value else cls.DENIED


class Variant(Enum):
    """Dialogue variants"""
    GRAMMAR = "grammar"  # grammar-driven slot filling
    NLU = "nlu"  # greeting, intent routing, meeting creation


# ============================================================================
# Constants
# ============================================================================

SLOT_FIELDS = ("person", "day", "time", "confirmation", "full_day")

# Prompt and no-input reprompt per question
PROMPTS = {
    "greeting": {
        Variant.GRAMMAR: "Let's create an appointment!",
        Variant.NLU: "How can I help you today?",
    },
    "greeting_no_input": "I can't hear you! How can I help you today?",
    "ask_person": "Who are you meeting with?",
    "ask_person_no_input": "I can't hear you! Who are you meeting with?",
    "ask_day": "On which day is your meeting?",
    "ask_day_no_input": "I can't hear a day! On which day is your meeting?",
    "ask_full_day": "Will it take the whole day?",
    "ask_full_day_no_input": "I didn't hear that! Will it take the whole day?",
    "ask_time": "What time is your meeting?",
    "ask_time_no_input": "I didn't hear that! What time is your meeting?",
    "confirm_no_input": "I didn't hear that! ",
    "confirm_clarify": "Please answer yes or no. ",
    "unknown_intent": "Sorry, I didn't understand that!",
    "appointment_created": "Your appointment has been created!",
    "abandoned": "Let's stop here for now. Click to start again.",
}

# Answers for the who-is question, keyed by person name
FAMOUS_PEOPLE = {
    "Jennie": (
        "Jennie is a member of BLACKPINK, known for her charismatic stage presence "
        "and fashion influence. She recently released her solo album 'RUBY' and is "
        "also active in the fashion industry as a brand ambassador."
    ),
    "Rosé": (
        "Rosé is the main vocalist of BLACKPINK. She is praised for her unique voice "
        "and emotional delivery in performances. Her single APT has gone viral lately."
    ),
    "Taylor": (
        "Taylor Swift is a globally acclaimed singer-songwriter known for her narrative "
        "songwriting style. She has won multiple Grammy Awards and is known for albums "
        "like '1989', 'Red', and 'Midnights'. She recently completed her Eras Tour."
    ),
}


# ============================================================================
# Grammar and slot candidates
# ============================================================================

@dataclass(frozen=True)
class GrammarEntry:
    """Partial slot record stored under one canonical grammar phrase"""
    person: Optional[str] = None
    day: Optional[str] = None
    time: Optional[str] = None
    confirmation: Optional[Confirmation] = None


@dataclass(frozen=True)
class PartialSlots:
    """Slot values extracted from a single turn; None means nothing extracted"""
    person: Optional[str] = None
    day: Optional[str] = None
    time: Optional[str] = None
    confirmation: Optional[Confirmation] = None
    full_day: Optional[bool] = None

    @classmethod
    def from_entry(cls, entry: Optional[GrammarEntry]) -> "PartialSlots":
        if entry is None:
            return cls()
        return cls(
            person=entry.person,
            day=entry.day,
            time=entry.time,
            confirmation=entry.confirmation,
        )


# ============================================================================
# Speech engine and NLU results
# ============================================================================

@dataclass(frozen=True)
class RecognitionResult:
    """Transcribed utterance of one listen turn"""
    utterance: str
    confidence: Optional[float] = None


class Entity(BaseModel):
    """Typed span extracted by the NLU service"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    category: str
    text: str
    confidence_score: float = Field(0.0, alias="confidenceScore")
    offset: int = 0
    length: int = 0


class IntentScore(BaseModel):
    """One scored intent hypothesis"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    category: str
    confidence_score: float = Field(0.0, alias="confidenceScore")


class NLUInterpretation(BaseModel):
    """
    Result of the NLU service for one utterance.

    Wire format: {topIntent, intents: [{category, confidenceScore}],
    entities: [{category, text, confidenceScore, offset, length}]}
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    top_intent: Optional[str] = Field(None, alias="topIntent")
    intents: List[IntentScore] = Field(default_factory=list)
    entities: List[Entity] = Field(default_factory=list)

    @property
    def confidence(self) -> float:
        """Confidence of the top intent, 0.0 when it is not among the scored intents"""
        for intent in self.intents:
            if intent.category == self.top_intent:
                return intent.confidence_score
        return 0.0


# ============================================================================
# Dialogue record
# ============================================================================

@dataclass(frozen=True)
class DialogueRecord:
    """
    Slots and bookkeeping owned by the state machine for one task instance.

    Instances are immutable; every turn yields a new record.
    """
    person: Optional[str] = None
    day: Optional[str] = None
    time: Optional[str] = None
    confirmation: Optional[Confirmation] = None
    full_day: Optional[bool] = None
    last_result: Optional[RecognitionResult] = None
    last_interpretation: Optional[NLUInterpretation] = None
    reprompts: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses and logs"""
        return {
            "person": self.person,
            "day": self.day,
            "time": self.time,
            "confirmation": self.confirmation.value if self.confirmation else None,
            "full_day": self.full_day,
            "last_utterance": self.last_result.utterance if self.last_result else None,
            "top_intent": self.last_interpretation.top_intent if self.last_interpretation else None,
            "reprompts": self.reprompts,
        }


# ============================================================================
# Pydantic Models for API
# ============================================================================

class StartDialogueRequest(BaseModel):
    """Request model for starting a dialogue"""
    variant: Optional[str] = Field(None, description="grammar or nlu; defaults to configuration")


class DialogueEventRequest(BaseModel):
    """Request model for delivering a speech-engine event"""
    type: str = Field(..., description="engine_ready, speak_complete, recognised or no_input")
    utterance: Optional[str] = Field(None, description="Recognized utterance text")
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0, description="Recognition confidence")
    interpretation: Optional[Dict[str, Any]] = Field(None, description="NLU result bundled with the utterance")


class CommandModel(BaseModel):
    """Command for the speech engine"""
    type: str = Field(..., description="prepare, speak or listen")
    utterance: Optional[str] = Field(None, description="Text to speak")
    use_nlu: Optional[bool] = Field(None, description="Whether to run NLU on the next utterance")


class DialogueResponse(BaseModel):
    """Response model for dialogue operations"""
    state: str = Field(..., description="Current machine state")
    previous_state: Optional[str] = Field(None, description="State before this event")
    variant: str = Field(..., description="Dialogue variant")
    record: Dict[str, Any] = Field(..., description="Current dialogue record")
    commands: List[CommandModel] = Field(default_factory=list, description="Commands for the speech engine")
    complete: bool = Field(..., description="Whether the dialogue reached its idle state")


class HealthResponse(BaseModel):
    """Response model for health check"""
    status: str = Field(..., description="Service status: healthy/degraded/unhealthy")
    dialogue_active: bool = Field(..., description="Whether a dialogue is running")
    redis_connected: bool = Field(..., description="Redis stream transport connectivity")
    config_valid: bool = Field(..., description="Configuration validation status")
    uptime_seconds: float = Field(..., description="Service uptime in seconds")
