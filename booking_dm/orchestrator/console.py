"""
Console speech boundary

Text stand-in for the speech engine: SPEAK is printed, LISTEN reads one line
from stdin (a blank line is NO_INPUT). When a listen turn asks for NLU, the
line is interpreted locally with `PatternInterpreter`.

Usage:
    python -m booking_dm.orchestrator.console --variant nlu
"""

import argparse
import asyncio
import logging
from collections import deque
from typing import Callable, Deque, Optional, Union

from booking_dm.appointment.config import DialogueConfig
from booking_dm.appointment.fsm_manager import DialogueMachine
from booking_dm.intent.pattern_interpreter import PatternInterpreter
from booking_dm.shared.events import Command, CommandType, DialogueEvent
from .runner import DialogueRunner

logger = logging.getLogger(__name__)

RESTART_PROMPT = "(press enter to start again, ctrl-d to quit) "


class ConsoleSpeechBoundary:
    """
    Speech boundary over stdin/stdout.

    Commands are answered in the order they were sent: PREPARE with
    ENGINE_READY, SPEAK with SPEAK_COMPLETE, LISTEN with the next input line.
    With nothing outstanding (the dialogue is done) the next line is a click.
    """

    def __init__(
        self,
        interpreter: Optional[PatternInterpreter] = None,
        input_func: Callable[[str], str] = input,
        output_func: Callable[[str], None] = print,
    ):
        self.interpreter = interpreter or PatternInterpreter()
        self.input_func = input_func
        self.output_func = output_func
        self._pending: Deque[Union[DialogueEvent, Command]] = deque()

    async def send(self, command: Command) -> None:
        if command.type == CommandType.PREPARE:
            self._pending.append(DialogueEvent.engine_ready())
        elif command.type == CommandType.SPEAK:
            self.output_func(f"DM: {command.utterance}")
            self._pending.append(DialogueEvent.speak_complete())
        elif command.type == CommandType.LISTEN:
            self._pending.append(command)

    async def receive(self) -> DialogueEvent:
        """
        Raises:
            EOFError: stdin was closed
        """
        if not self._pending:
            await asyncio.to_thread(self.input_func, RESTART_PROMPT)
            return DialogueEvent.click()

        item = self._pending.popleft()
        if isinstance(item, DialogueEvent):
            return item

        line = (await asyncio.to_thread(self.input_func, "You: ")).strip()
        if not line:
            return DialogueEvent.no_input()

        interpretation = self.interpreter.interpret(line) if item.use_nlu else None
        return DialogueEvent.recognised(line, confidence=1.0, interpretation=interpretation)


async def run_console(config: DialogueConfig, variant: Optional[str] = None) -> None:
    machine = DialogueMachine.from_config(config, variant)
    runner = DialogueRunner(
        machine,
        boundary=ConsoleSpeechBoundary(),
        log_state_transitions=config.log_state_transitions,
    )
    try:
        await runner.run()
    except EOFError:
        pass
    finally:
        await runner.stop()


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(
        description="Run the booking dialogue on the console",
    )
    parser.add_argument(
        "--variant",
        choices=["grammar", "nlu"],
        help="Dialogue variant (default: DM_VARIANT or grammar)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Show state transitions",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s: %(message)s"
    )

    asyncio.run(run_console(DialogueConfig.from_env(), args.variant))


if __name__ == "__main__":
    main()
