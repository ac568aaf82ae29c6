"""
Configuration for the Booking Dialogue Manager

Speech settings are relayed to the speech boundary on PREPARE; the
remaining fields shape the turn state machine and the Redis transport.
"""

import os
import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

VARIANTS = ("grammar", "nlu")


@dataclass
class DialogueConfig:
    """
    Configuration for the dialogue manager.

    Attributes:
        variant: Which dialogue to run, "grammar" (slot filling) or "nlu" (greeting and route)
        locale: Speech engine locale (default: en-US)
        tts_voice: Speech engine voice (default: en-US-DavisNeural)
        asr_no_input_timeout_ms: No-input timeout the speech engine applies (default: 5000)
        asr_complete_timeout_ms: End-of-utterance timeout (default: 0)
        max_reprompts: Cap on consecutive reprompts of one question (default: None = unbounded)
        grammar_path: Optional JSON file replacing the built-in grammar table
        redis_url: Redis connection URL for the stream transport
        log_state_transitions: Log machine transitions (default: True)
    """

    variant: str = "grammar"
    locale: str = "en-US"
    tts_voice: str = "en-US-DavisNeural"
    asr_no_input_timeout_ms: int = 5000
    asr_complete_timeout_ms: int = 0
    max_reprompts: Optional[int] = None
    grammar_path: Optional[str] = None
    redis_url: str = "redis://localhost:6379/0"
    log_state_transitions: bool = True

    def __post_init__(self):
        """Validate configuration after initialization"""
        if self.variant not in VARIANTS:
            raise ValueError(
                f"variant must be one of {VARIANTS}, got {self.variant!r}"
            )

        if self.asr_no_input_timeout_ms <= 0:
            raise ValueError(
                f"asr_no_input_timeout_ms must be positive, got {self.asr_no_input_timeout_ms}"
            )

        if self.asr_complete_timeout_ms < 0:
            raise ValueError(
                f"asr_complete_timeout_ms must not be negative, got {self.asr_complete_timeout_ms}"
            )

        if self.max_reprompts is not None and self.max_reprompts < 1:
            raise ValueError(
                f"max_reprompts must be at least 1 when set, got {self.max_reprompts}"
            )

        if not self.redis_url.startswith(("redis://", "rediss://", "unix://")):
            raise ValueError(
                f"redis_url must start with redis://, rediss://, or unix://, got {self.redis_url}"
            )

        if self.grammar_path and not os.path.exists(self.grammar_path):
            logger.warning(
                f"Grammar file {self.grammar_path} not found, the built-in grammar will be used"
            )
            self.grammar_path = None

        if self.log_state_transitions:
            logger.info(
                f" DialogueConfig loaded: variant={self.variant}, locale={self.locale}, "
                f"no_input_timeout={self.asr_no_input_timeout_ms}ms, "
                f"max_reprompts={self.max_reprompts or 'unbounded'}"
            )

    def speech_settings(self) -> dict:
        """Settings handed to the speech engine with PREPARE."""
        return {
            "locale": self.locale,
            "ttsDefaultVoice": self.tts_voice,
            "asrDefaultNoInputTimeout": self.asr_no_input_timeout_ms,
            "asrDefaultCompleteTimeout": self.asr_complete_timeout_ms,
        }

    @staticmethod
    def from_env() -> "DialogueConfig":
        """
        Load configuration from environment variables.

        Environment Variables:
            DM_VARIANT: grammar or nlu (default: grammar)
            DM_LOCALE: Speech locale (default: en-US)
            DM_TTS_VOICE: TTS voice (default: en-US-DavisNeural)
            DM_ASR_NO_INPUT_TIMEOUT_MS: No-input timeout (default: 5000)
            DM_ASR_COMPLETE_TIMEOUT_MS: Complete timeout (default: 0)
            DM_MAX_REPROMPTS: Reprompt cap (default: unset = unbounded)
            DM_GRAMMAR_PATH: JSON grammar file (optional)
            DM_REDIS_HOST: Redis host (default: localhost)
            DM_REDIS_PORT: Redis port (default: 6379)
            DM_REDIS_DB: Redis database (default: 0)
            DM_LOG_STATE_TRANSITIONS: Log state transitions (default: true)

        Returns:
            DialogueConfig instance loaded from environment
        """
        redis_host = os.getenv("DM_REDIS_HOST", "localhost")
        redis_port = _int_env("DM_REDIS_PORT", 6379)
        redis_db = _int_env("DM_REDIS_DB", 0)
        redis_url = f"redis://{redis_host}:{redis_port}/{redis_db}"

        max_reprompts_raw = os.getenv("DM_MAX_REPROMPTS")
        max_reprompts = None
        if max_reprompts_raw:
            try:
                max_reprompts = int(max_reprompts_raw)
            except ValueError:
                logger.warning("Invalid DM_MAX_REPROMPTS, reprompts stay unbounded")

        log_state_transitions = os.getenv(
            "DM_LOG_STATE_TRANSITIONS", "true"
        ).lower() in ("true", "1", "yes")

        return DialogueConfig(
            variant=os.getenv("DM_VARIANT", "grammar").lower(),
            locale=os.getenv("DM_LOCALE", "en-US"),
            tts_voice=os.getenv("DM_TTS_VOICE", "en-US-DavisNeural"),
            asr_no_input_timeout_ms=_int_env("DM_ASR_NO_INPUT_TIMEOUT_MS", 5000),
            asr_complete_timeout_ms=_int_env("DM_ASR_COMPLETE_TIMEOUT_MS", 0),
            max_reprompts=max_reprompts,
            grammar_path=os.getenv("DM_GRAMMAR_PATH") or None,
            redis_url=redis_url,
            log_state_transitions=log_state_transitions,
        )


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        logger.warning(f"Invalid {name}, using default {default}")
        return default
