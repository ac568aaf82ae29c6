import json
import logging
import time
from typing import Any, Dict, Optional


class StructuredLogger:
    """
    Emits one JSON log line per dialogue event, transition and command.

    Wraps a standard `logging.Logger`, so handlers and formatters configured
    by the host application still apply.
    """

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger(__name__)

    def _log(
        self,
        level: str,
        event_type: str,
        message: str,
        session_id: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        entry: Dict[str, Any] = {
            "timestamp": time.time(),
            "event_type": event_type,
            "message": message,
        }

        if session_id is not None:
            entry["session_id"] = session_id

        if data:
            entry["data"] = dict(data)

        log_method = getattr(self.logger, level.lower(), self.logger.info)
        try:
            log_method(json.dumps(entry, default=str))
        except (TypeError, ValueError):
            log_method(f"[STRUCTURED_LOG_FALLBACK] {entry}")

    def state_transition(
        self,
        session_id: str,
        old_state: str,
        new_state: str,
        trigger: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Structured log for state transitions."""
        payload = {"old_state": old_state, "new_state": new_state, "trigger": trigger}
        if data:
            payload["data"] = data
        self._log(
            level="INFO",
            event_type="state_transition",
            message=f"{old_state} -> {new_state} ({trigger})",
            session_id=session_id,
            data=payload,
        )

    def event_received(
        self,
        session_id: str,
        event_type: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Structured log when a boundary or UI event is consumed."""
        self._log(
            level="DEBUG",
            event_type="event_received",
            message=f"Received {event_type}",
            session_id=session_id,
            data={"event_type": event_type, "payload": payload or {}},
        )

    def command_sent(
        self,
        session_id: str,
        command: Dict[str, Any],
    ) -> None:
        """Structured log for commands issued to the speech boundary."""
        self._log(
            level="DEBUG",
            event_type="command_sent",
            message=f"Sent {command.get('type')}",
            session_id=session_id,
            data=command,
        )
