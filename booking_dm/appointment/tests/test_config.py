"""
Tests for DialogueConfig validation and environment loading.
"""

import pytest

from ..config import DialogueConfig


class TestDialogueConfig:
    """Test configuration validation"""

    def test_defaults(self):
        config = DialogueConfig()
        assert config.variant == "grammar"
        assert config.max_reprompts is None
        assert config.speech_settings() == {
            "locale": "en-US",
            "ttsDefaultVoice": "en-US-DavisNeural",
            "asrDefaultNoInputTimeout": 5000,
            "asrDefaultCompleteTimeout": 0,
        }

    @pytest.mark.parametrize("kwargs", [
        {"variant": "chat"},
        {"asr_no_input_timeout_ms": 0},
        {"asr_complete_timeout_ms": -1},
        {"max_reprompts": 0},
        {"redis_url": "http://localhost:6379"},
    ])
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            DialogueConfig(**kwargs)

    def test_missing_grammar_file_falls_back(self, tmp_path):
        config = DialogueConfig(grammar_path=str(tmp_path / "missing.json"))
        assert config.grammar_path is None


class TestFromEnv:
    """Test loading configuration from environment variables"""

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("DM_VARIANT", "NLU")
        monkeypatch.setenv("DM_TTS_VOICE", "en-GB-RyanNeural")
        monkeypatch.setenv("DM_MAX_REPROMPTS", "3")
        monkeypatch.setenv("DM_REDIS_HOST", "redis")
        monkeypatch.setenv("DM_REDIS_PORT", "6380")
        monkeypatch.setenv("DM_LOG_STATE_TRANSITIONS", "false")

        config = DialogueConfig.from_env()

        assert config.variant == "nlu"
        assert config.tts_voice == "en-GB-RyanNeural"
        assert config.max_reprompts == 3
        assert config.redis_url == "redis://redis:6380/0"
        assert config.log_state_transitions is False

    def test_invalid_integers_fall_back(self, monkeypatch):
        monkeypatch.setenv("DM_ASR_NO_INPUT_TIMEOUT_MS", "soon")
        monkeypatch.setenv("DM_MAX_REPROMPTS", "many")

        config = DialogueConfig.from_env()

        assert config.asr_no_input_timeout_ms == 5000
        assert config.max_reprompts is None
