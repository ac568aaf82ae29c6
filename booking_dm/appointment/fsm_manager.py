"""
Turn state machine for the Booking Dialogue Manager

Hierarchical dialogue expressed as a flat state enum (`<composite>.<phase>`)
plus a transition table keyed by (state, event). Each table entry is an
ordered list of guarded transitions; the first guard that holds wins.

`transition()` is pure: given the current state, an event and the dialogue
record it returns the next state, the next record and the commands for the
speech boundary (entry actions of every state entered).
"""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from booking_dm.appointment.aggregator import combine, fresh_record, merge
from booking_dm.appointment.config import DialogueConfig
from booking_dm.appointment.grammar import DEFAULT_GRAMMAR, Grammar
from booking_dm.appointment.models import (
    Confirmation, DialogueRecord, FAMOUS_PEOPLE, PartialSlots, PROMPTS,
    RecognitionResult, Variant
)
from booking_dm.intent.nlu_adapter import adapt, first_entity_text, parse_interpretation, top_intent
from booking_dm.intent.router import Route, route
from booking_dm.shared.events import Command, DialogueEvent, EventType

logger = logging.getLogger(__name__)


# ============================================================================
# States
# ============================================================================

class DialogueState(Enum):
    """Every node of every dialogue variant"""
    PREPARE = "prepare"

    GREETING_PROMPT = "greeting.prompt"
    GREETING_NO_INPUT = "greeting.no_input"
    GREETING_LISTEN = "greeting.listen"

    WHO_IS_X = "who_is_x"
    UNKNOWN_INTENT = "unknown_intent"

    ASK_PERSON_PROMPT = "ask_person.prompt"
    ASK_PERSON_NO_INPUT = "ask_person.no_input"
    ASK_PERSON_LISTEN = "ask_person.listen"
    ASK_PERSON_ECHO = "ask_person.echo"

    ASK_DAY_PROMPT = "ask_day.prompt"
    ASK_DAY_NO_INPUT = "ask_day.no_input"
    ASK_DAY_LISTEN = "ask_day.listen"
    ASK_DAY_ECHO = "ask_day.echo"

    ASK_FULL_DAY_PROMPT = "ask_full_day.prompt"
    ASK_FULL_DAY_NO_INPUT = "ask_full_day.no_input"
    ASK_FULL_DAY_LISTEN = "ask_full_day.listen"
    ASK_FULL_DAY_ECHO = "ask_full_day.echo"

    ASK_TIME_PROMPT = "ask_time.prompt"
    ASK_TIME_NO_INPUT = "ask_time.no_input"
    ASK_TIME_LISTEN = "ask_time.listen"
    ASK_TIME_ECHO = "ask_time.echo"

    CONFIRM_PROMPT = "confirm.prompt"
    CONFIRM_NO_INPUT = "confirm.no_input"
    CONFIRM_CLARIFY = "confirm.clarify"
    CONFIRM_LISTEN = "confirm.listen"

    APPOINTMENT_CREATED = "appointment_created"
    ABANDONED = "abandoned"
    DONE = "done"

    @property
    def composite(self) -> str:
        return self.value.split(".", 1)[0]

    @property
    def phase(self) -> Optional[str]:
        parts = self.value.split(".", 1)
        return parts[1] if len(parts) == 2 else None


@dataclass(frozen=True)
class Composite:
    """Prompt/NoInput/Listen sub-machine of one question"""
    name: str
    prompt: DialogueState
    no_input: DialogueState
    listen: DialogueState
    echo: Optional[DialogueState] = None
    slot: Optional[str] = None


GREETING = Composite(
    "greeting", DialogueState.GREETING_PROMPT, DialogueState.GREETING_NO_INPUT,
    DialogueState.GREETING_LISTEN,
)
ASK_PERSON = Composite(
    "ask_person", DialogueState.ASK_PERSON_PROMPT, DialogueState.ASK_PERSON_NO_INPUT,
    DialogueState.ASK_PERSON_LISTEN, DialogueState.ASK_PERSON_ECHO, slot="person",
)
ASK_DAY = Composite(
    "ask_day", DialogueState.ASK_DAY_PROMPT, DialogueState.ASK_DAY_NO_INPUT,
    DialogueState.ASK_DAY_LISTEN, DialogueState.ASK_DAY_ECHO, slot="day",
)
ASK_FULL_DAY = Composite(
    "ask_full_day", DialogueState.ASK_FULL_DAY_PROMPT, DialogueState.ASK_FULL_DAY_NO_INPUT,
    DialogueState.ASK_FULL_DAY_LISTEN, DialogueState.ASK_FULL_DAY_ECHO, slot="full_day",
)
ASK_TIME = Composite(
    "ask_time", DialogueState.ASK_TIME_PROMPT, DialogueState.ASK_TIME_NO_INPUT,
    DialogueState.ASK_TIME_LISTEN, DialogueState.ASK_TIME_ECHO, slot="time",
)
CONFIRM = Composite(
    "confirm", DialogueState.CONFIRM_PROMPT, DialogueState.CONFIRM_NO_INPUT,
    DialogueState.CONFIRM_LISTEN,
)


# ============================================================================
# Transitions
# ============================================================================

Guard = Callable[[DialogueRecord, DialogueEvent, "DialogueMachine"], bool]
Action = Callable[[DialogueRecord, DialogueEvent, "DialogueMachine"], DialogueRecord]


@dataclass(frozen=True)
class Transition:
    """
    One guarded transition.

    A `target` of None is an internal transition: actions run and events
    are raised, but the state is neither left nor re-entered.
    """
    target: Optional[DialogueState]
    guard: Optional[Guard] = None
    actions: Tuple[Action, ...] = ()
    raise_event: Optional[EventType] = None
    label: str = ""


@dataclass(frozen=True)
class TraceLine:
    from_state: str
    to_state: str
    event: str
    label: str


@dataclass(frozen=True)
class TransitionResult:
    state: DialogueState
    record: DialogueRecord
    commands: Tuple[Command, ...] = ()
    previous_state: Optional[DialogueState] = None
    handled: bool = True
    trace: Tuple[TraceLine, ...] = ()

    @property
    def complete(self) -> bool:
        return self.state == DialogueState.DONE


TransitionTable = Dict[Tuple[DialogueState, EventType], List[Transition]]


# ---- guards ----

def _has_result(record, event, machine) -> bool:
    return record.last_result is not None


def _cap_reached(record, event, machine) -> bool:
    return machine.max_reprompts is not None and record.reprompts >= machine.max_reprompts


def _slot_set(slot: str) -> Guard:
    def guard(record, event, machine) -> bool:
        value = getattr(record, slot)
        return value is not None and value != ""
    guard.__name__ = f"{slot}_set"
    return guard


def _full_day_is(expected: bool) -> Guard:
    def guard(record, event, machine) -> bool:
        return record.full_day is expected
    return guard


def _answer_is(expected: Confirmation) -> Guard:
    def guard(record, event, machine) -> bool:
        if record.last_result is None:
            return False
        return machine.grammar.confirmation(record.last_result.utterance) == expected
    return guard


def _routes_to(expected: Route) -> Guard:
    def guard(record, event, machine) -> bool:
        return record.last_result is not None and route(top_intent(record.last_interpretation)) == expected
    return guard


# ---- actions ----

def _store_result(record, event, machine) -> DialogueRecord:
    return replace(
        record,
        last_result=RecognitionResult(event.utterance or "", event.confidence),
        last_interpretation=parse_interpretation(event.interpretation),
    )


def _clear_result(record, event, machine) -> DialogueRecord:
    return replace(record, last_result=None, last_interpretation=None)


def _merge_turn(record, event, machine) -> DialogueRecord:
    return merge(record, machine.extract(record))


def _merge_slot(slot: str) -> Action:
    """Merge only `slot`; other values heard in the same turn are dropped"""
    def action(record, event, machine) -> DialogueRecord:
        value = getattr(machine.extract(record), slot)
        return merge(record, PartialSlots(**{slot: value}))
    action.__name__ = f"merge_{slot}"
    return action


def _merge_full_day(record, event, machine) -> DialogueRecord:
    answer = machine.extract(record).confirmation
    if answer is None:
        return record
    return merge(record, PartialSlots(full_day=answer == Confirmation.AFFIRMED))


def _merge_entities(record, event, machine) -> DialogueRecord:
    return merge(record, adapt(record.last_interpretation))


def _count_reprompt(record, event, machine) -> DialogueRecord:
    return replace(record, reprompts=record.reprompts + 1)


def _advance(record, event, machine) -> DialogueRecord:
    return replace(record, reprompts=0)


def _restart(record, event, machine) -> DialogueRecord:
    return fresh_record()


# ---- table construction ----

def _question_rows(table: TransitionTable, c: Composite) -> None:
    """Prompt -> Listen, NoInput -> Listen, Listen stores the result and raises LISTEN_COMPLETE"""
    table[(c.prompt, EventType.SPEAK_COMPLETE)] = [Transition(c.listen)]
    table[(c.no_input, EventType.SPEAK_COMPLETE)] = [Transition(c.listen)]
    table[(c.listen, EventType.RECOGNISED)] = [
        Transition(None, actions=(_store_result,), raise_event=EventType.LISTEN_COMPLETE, label="store result"),
    ]
    table[(c.listen, EventType.NO_INPUT)] = [
        Transition(None, actions=(_clear_result,), raise_event=EventType.LISTEN_COMPLETE, label="clear result"),
    ]


def _reprompt_rows(reprompt_target: DialogueState) -> List[Transition]:
    return [
        Transition(DialogueState.ABANDONED, guard=_cap_reached, label="reprompt cap reached"),
        Transition(reprompt_target, actions=(_count_reprompt,), label="reprompt"),
    ]


def _slot_rows(table: TransitionTable, c: Composite, next_prompt: DialogueState) -> None:
    """Grammar slot turn: echo recognition, advance when the slot is filled"""
    _question_rows(table, c)
    table[(c.listen, EventType.LISTEN_COMPLETE)] = [
        Transition(c.echo, guard=_has_result, actions=(_merge_slot(c.slot),), label="recognised"),
        *_reprompt_rows(c.no_input),
    ]
    table[(c.echo, EventType.SPEAK_COMPLETE)] = [
        Transition(next_prompt, guard=_slot_set(c.slot), actions=(_advance,), label=f"{c.slot} filled"),
        *_reprompt_rows(c.prompt),
    ]


def _full_day_rows(table: TransitionTable) -> None:
    c = ASK_FULL_DAY
    _question_rows(table, c)
    table[(c.listen, EventType.LISTEN_COMPLETE)] = [
        Transition(c.echo, guard=_has_result, actions=(_merge_full_day,), label="recognised"),
        *_reprompt_rows(c.no_input),
    ]
    table[(c.echo, EventType.SPEAK_COMPLETE)] = [
        Transition(CONFIRM.prompt, guard=_full_day_is(True), actions=(_advance,), label="whole day"),
        Transition(ASK_TIME.prompt, guard=_full_day_is(False), actions=(_advance,), label="not whole day"),
        *_reprompt_rows(c.prompt),
    ]


def _confirm_rows(table: TransitionTable) -> None:
    c = CONFIRM
    _question_rows(table, c)
    table[(DialogueState.CONFIRM_CLARIFY, EventType.SPEAK_COMPLETE)] = [Transition(c.listen)]
    table[(c.listen, EventType.LISTEN_COMPLETE)] = [
        Transition(
            DialogueState.APPOINTMENT_CREATED, guard=_answer_is(Confirmation.AFFIRMED),
            actions=(_merge_turn, _advance), label="affirmed",
        ),
        Transition(
            GREETING.prompt, guard=_answer_is(Confirmation.DENIED),
            actions=(_restart,), label="denied",
        ),
        Transition(DialogueState.ABANDONED, guard=_cap_reached, label="reprompt cap reached"),
        Transition(DialogueState.CONFIRM_CLARIFY, guard=_has_result, actions=(_count_reprompt,), label="not yes/no"),
        Transition(c.no_input, actions=(_count_reprompt,), label="no input"),
    ]


def _common_rows(table: TransitionTable) -> None:
    table[(DialogueState.PREPARE, EventType.ENGINE_READY)] = [
        Transition(GREETING.prompt, actions=(_restart,), label="engine ready"),
    ]
    table[(DialogueState.APPOINTMENT_CREATED, EventType.SPEAK_COMPLETE)] = [Transition(DialogueState.DONE)]
    table[(DialogueState.ABANDONED, EventType.SPEAK_COMPLETE)] = [Transition(DialogueState.DONE)]
    table[(DialogueState.DONE, EventType.CLICK)] = [
        Transition(GREETING.prompt, actions=(_restart,), label="click"),
    ]


def build_grammar_table() -> TransitionTable:
    """Greeting, then person, day, whole day?, time, confirmation"""
    table: TransitionTable = {}
    _common_rows(table)
    table[(GREETING.prompt, EventType.SPEAK_COMPLETE)] = [Transition(ASK_PERSON.prompt)]
    _slot_rows(table, ASK_PERSON, ASK_DAY.prompt)
    _slot_rows(table, ASK_DAY, ASK_FULL_DAY.prompt)
    _full_day_rows(table)
    _slot_rows(table, ASK_TIME, CONFIRM.prompt)
    _confirm_rows(table)
    return table


def build_nlu_table() -> TransitionTable:
    """Greeting routed by top intent: who-is answer, meeting creation, or unknown"""
    table: TransitionTable = {}
    _common_rows(table)
    _question_rows(table, GREETING)
    table[(GREETING.listen, EventType.LISTEN_COMPLETE)] = [
        Transition(DialogueState.WHO_IS_X, guard=_routes_to(Route.WHO_IS_X), label="who_is_X"),
        Transition(
            ASK_DAY.prompt, guard=_routes_to(Route.CREATE_MEETING),
            actions=(_merge_entities, _advance), label="createMeeting",
        ),
        Transition(DialogueState.UNKNOWN_INTENT, guard=_has_result, label="unknown intent"),
        *_reprompt_rows(GREETING.no_input),
    ]
    table[(DialogueState.WHO_IS_X, EventType.SPEAK_COMPLETE)] = [Transition(DialogueState.DONE)]
    table[(DialogueState.UNKNOWN_INTENT, EventType.SPEAK_COMPLETE)] = [
        Transition(DialogueState.ABANDONED, guard=_cap_reached, label="reprompt cap reached"),
        Transition(GREETING.prompt, actions=(_count_reprompt,), label="ask again"),
    ]
    _slot_rows(table, ASK_DAY, ASK_TIME.prompt)
    _slot_rows(table, ASK_TIME, CONFIRM.prompt)
    _confirm_rows(table)
    return table


TABLE_BUILDERS = {
    Variant.GRAMMAR: build_grammar_table,
    Variant.NLU: build_nlu_table,
}


# ============================================================================
# Machine
# ============================================================================

@dataclass
class DialogueMachine:
    """
    Static definition of one dialogue variant: transition table, grammar,
    who-is answers and retry policy. Holds no per-dialogue state.
    """
    variant: Variant = Variant.GRAMMAR
    grammar: Grammar = DEFAULT_GRAMMAR
    biographies: Mapping[str, str] = field(default_factory=lambda: dict(FAMOUS_PEOPLE))
    max_reprompts: Optional[int] = None
    table: TransitionTable = field(init=False, repr=False)

    def __post_init__(self):
        self.table = TABLE_BUILDERS[self.variant]()

    @classmethod
    def from_config(cls, config: DialogueConfig, variant: Optional[str] = None) -> "DialogueMachine":
        grammar = Grammar.from_json(config.grammar_path) if config.grammar_path else DEFAULT_GRAMMAR
        return cls(
            variant=Variant(variant or config.variant),
            grammar=grammar,
            max_reprompts=config.max_reprompts,
        )

    @property
    def states(self) -> List[DialogueState]:
        """States reachable in this variant"""
        found = {DialogueState.PREPARE}
        for (state, _), transitions in self.table.items():
            found.add(state)
            found.update(t.target for t in transitions if t.target is not None)
        return [s for s in DialogueState if s in found]

    @property
    def use_nlu(self) -> bool:
        return self.variant == Variant.NLU

    def extract(self, record: DialogueRecord) -> PartialSlots:
        """Slot candidate of the last turn: grammar first, NLU entities fill the gaps"""
        if record.last_result is None:
            return PartialSlots()
        from_grammar = PartialSlots.from_entry(self.grammar.lookup(record.last_result.utterance))
        return combine(from_grammar, adapt(record.last_interpretation))

    def start(self) -> TransitionResult:
        """Enter the initial state with a fresh record"""
        state = DialogueState.PREPARE
        record = fresh_record()
        return TransitionResult(
            state=state,
            record=record,
            commands=tuple(entry_commands(state, record, self)),
        )

    # ---- messages ----

    def confirmation_question(self, record: DialogueRecord) -> str:
        person = record.person or "someone"
        if record.full_day:
            return f"Do you want me to create an appointment with {person} on {record.day} for the whole day?"
        return f"Do you want me to create an appointment with {person} on {record.day} at {record.time}?"

    def who_is_answer(self, record: DialogueRecord) -> str:
        person = first_entity_text(record.last_interpretation, "person")
        if not person:
            return "I couldn't identify the person."
        if person in self.biographies:
            return self.biographies[person]
        folded = {name.casefold(): bio for name, bio in self.biographies.items()}
        if person.casefold() in folded:
            return folded[person.casefold()]
        return f"Sorry, I don't have info on {person}."

    def echo(self, record: DialogueRecord) -> str:
        utterance = record.last_result.utterance if record.last_result else ""
        verdict = "is" if self.grammar.is_known(utterance) else "is not"
        return f"You just said: {utterance}. And it {verdict} in the grammar."


def entry_commands(state: DialogueState, record: DialogueRecord, machine: DialogueMachine) -> List[Command]:
    """Commands issued on entering `state`"""
    if state == DialogueState.PREPARE:
        return [Command.prepare()]
    if state == DialogueState.DONE:
        return []
    if state == DialogueState.GREETING_PROMPT:
        return [Command.speak(PROMPTS["greeting"][machine.variant])]
    if state == DialogueState.WHO_IS_X:
        return [Command.speak(machine.who_is_answer(record))]
    if state == DialogueState.CONFIRM_PROMPT:
        return [Command.speak(machine.confirmation_question(record))]
    if state in (DialogueState.CONFIRM_NO_INPUT, DialogueState.CONFIRM_CLARIFY):
        prefix = PROMPTS[f"confirm_{state.phase}"]
        return [Command.speak(prefix + machine.confirmation_question(record))]
    if state.phase == "listen":
        return [Command.listen(use_nlu=machine.use_nlu)]
    if state.phase == "echo":
        return [Command.speak(machine.echo(record))]
    if state.phase == "no_input":
        return [Command.speak(PROMPTS[f"{state.composite}_no_input"])]
    if state.phase == "prompt":
        return [Command.speak(PROMPTS[state.composite])]
    return [Command.speak(PROMPTS[state.value])]


def transition(
    state: DialogueState,
    event: DialogueEvent,
    record: DialogueRecord,
    machine: DialogueMachine,
) -> TransitionResult:
    """
    Apply one external event.

    Internal events raised by a transition (LISTEN_COMPLETE) are processed
    before returning. Events with no enabled transition leave state and
    record untouched and produce no commands.
    """
    previous_state = state
    commands: List[Command] = []
    trace: List[TraceLine] = []
    handled = False
    pending = [event]

    while pending:
        current = pending.pop(0)
        candidates = machine.table.get((state, current.type), [])
        chosen = next(
            (t for t in candidates if t.guard is None or t.guard(record, current, machine)),
            None,
        )
        if chosen is None:
            logger.debug(f"Event {current.type.value} ignored in state {state.value}")
            continue

        handled = True
        for action in chosen.actions:
            record = action(record, current, machine)

        target = chosen.target if chosen.target is not None else state
        trace.append(TraceLine(state.value, target.value, current.type.value, chosen.label))

        if chosen.target is not None:
            state = chosen.target
            commands.extend(entry_commands(state, record, machine))

        if chosen.raise_event is not None:
            pending.append(DialogueEvent(chosen.raise_event))

    return TransitionResult(
        state=state,
        record=record,
        commands=tuple(commands),
        previous_state=previous_state,
        handled=handled,
        trace=tuple(trace),
    )
