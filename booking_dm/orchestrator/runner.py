"""
Dialogue runner

Owns one live dialogue: the machine definition, the current state and the
dialogue record. Feeds boundary events through the pure transition function
and forwards the resulting commands to the speech boundary in order.
"""

import asyncio
import inspect
import logging
import uuid
from typing import Awaitable, Callable, List, Optional, Union

from pydantic import ValidationError

from booking_dm.appointment.fsm_manager import (
    DialogueMachine, DialogueState, TransitionResult, transition
)
from booking_dm.appointment.models import DialogueRecord
from booking_dm.intent.nlu_adapter import parse_interpretation
from booking_dm.shared.events import Command, CommandType, DialogueEvent, EventType
from .boundary import SpeechBoundary
from .structured_logger import StructuredLogger

logger = logging.getLogger(__name__)

Listener = Callable[[DialogueState, DialogueRecord], Union[None, Awaitable[None]]]

TURN_ENDING = (EventType.RECOGNISED, EventType.NO_INPUT)


class DialogueError(Exception):
    """Base class for dialogue runner errors"""


class DialogueNotActive(DialogueError):
    """Event delivered to a runner that was not started or was stopped"""


class ProtocolViolation(DialogueError):
    """The machine tried to open a second listen turn while one is outstanding"""


class DialogueRunner:
    """
    One dialogue instance with explicit creation (`start`) and teardown (`stop`).

    The runner can be driven two ways: pull-style with `run()`, which awaits
    events from the boundary, or push-style with `dispatch()`, which callers
    such as the HTTP surface use directly. Without a boundary, commands are
    only returned to the caller.
    """

    def __init__(
        self,
        machine: DialogueMachine,
        boundary: Optional[SpeechBoundary] = None,
        session_id: Optional[str] = None,
        log_state_transitions: bool = True,
    ):
        self.machine = machine
        self.boundary = boundary
        self.session_id = session_id or str(uuid.uuid4())
        self.log_state_transitions = log_state_transitions
        self.state: Optional[DialogueState] = None
        self.record: DialogueRecord = DialogueRecord()
        self.running = False
        self.listen_outstanding = False
        self._listeners: List[Listener] = []
        self._lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None
        self.structured_logger = StructuredLogger(logger)

    @property
    def complete(self) -> bool:
        return self.state == DialogueState.DONE

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a state listener; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def start(self) -> TransitionResult:
        """Enter the initial state and issue its commands."""
        async with self._lock:
            result = self.machine.start()
            self.running = True
            self.listen_outstanding = False
            await self._apply(result, trigger="start")
            logger.info(f"[{self.session_id}] Dialogue started ({self.machine.variant.value})")
            return result

    async def dispatch(self, event: DialogueEvent) -> TransitionResult:
        """
        Apply one event and forward the resulting commands.

        A RECOGNISED event whose interpretation fails validation is logged and
        dropped; the machine does not see it and the listen turn stays open.

        Raises:
            DialogueNotActive: runner not started or already stopped
            ProtocolViolation: a second LISTEN would overlap an outstanding one
        """
        async with self._lock:
            if not self.running or self.state is None:
                raise DialogueNotActive(f"Dialogue {self.session_id} is not active")

            self.structured_logger.event_received(self.session_id, event.type.value, event.to_payload())
            try:
                parse_interpretation(event.interpretation)
            except ValidationError as e:
                logger.warning(
                    f"[{self.session_id}] Dropping {event.type.value} with malformed interpretation: "
                    f"{e.error_count()} error(s)"
                )
                return TransitionResult(
                    state=self.state,
                    record=self.record,
                    previous_state=self.state,
                    handled=False,
                )

            if event.type in TURN_ENDING:
                self.listen_outstanding = False

            result = transition(self.state, event, self.record, self.machine)
            if not result.handled:
                logger.debug(
                    f"[{self.session_id}] {event.type.value} has no transition in {self.state.value}"
                )
            await self._apply(result, trigger=event.type.value)
            return result

    async def click(self) -> TransitionResult:
        """UI interrupt; only honoured once the dialogue is done."""
        return await self.dispatch(DialogueEvent.click())

    async def run(self, stop_when_done: bool = False) -> None:
        """Pull events from the boundary until stopped."""
        if self.boundary is None:
            raise DialogueError("run() needs a speech boundary")
        if not self.running:
            await self.start()

        while self.running:
            event = await self.boundary.receive()
            await self.dispatch(event)
            if stop_when_done and self.complete:
                break

    def run_in_background(self) -> asyncio.Task:
        self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self) -> None:
        """Tear down the dialogue and discard its record."""
        self.running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self.state = None
        self.record = DialogueRecord()
        self.listen_outstanding = False
        logger.info(f"[{self.session_id}] Dialogue stopped")

    async def _apply(self, result: TransitionResult, trigger: str) -> None:
        for command in result.commands:
            if command.type == CommandType.LISTEN:
                if self.listen_outstanding:
                    raise ProtocolViolation(
                        f"[{self.session_id}] LISTEN issued in {result.state.value} "
                        f"while a listen turn is still open"
                    )
                self.listen_outstanding = True

        previous = self.state
        self.state = result.state
        self.record = result.record

        if self.log_state_transitions and previous != result.state:
            self.structured_logger.state_transition(
                self.session_id,
                previous.value if previous else "none",
                result.state.value,
                trigger,
                data={"record": result.record.to_dict()},
            )

        for command in result.commands:
            await self._send(command)

        if previous != result.state:
            await self._notify()

    async def _send(self, command: Command) -> None:
        self.structured_logger.command_sent(self.session_id, command.to_dict())
        if self.boundary is not None:
            await self.boundary.send(command)

    async def _notify(self) -> None:
        for listener in list(self._listeners):
            if inspect.iscoroutinefunction(listener):
                await listener(self.state, self.record)
            else:
                listener(self.state, self.record)
