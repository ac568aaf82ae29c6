"""
Test Suite for the turn state machine

Drives `transition()` turn by turn with canned speech-engine events, the
way a scripted speech boundary would.
"""

import pytest

from booking_dm.shared.events import Command, DialogueEvent
from ..config import DialogueConfig
from ..fsm_manager import DialogueMachine, DialogueState, transition
from ..models import Confirmation, DialogueRecord, FAMOUS_PEOPLE, PROMPTS, Variant


class Driver:
    """Keeps state and record between turns and remembers the last commands"""

    def __init__(self, machine: DialogueMachine):
        self.machine = machine
        result = machine.start()
        self.state = result.state
        self.record = result.record
        self.commands = list(result.commands)

    def send(self, event: DialogueEvent):
        result = transition(self.state, event, self.record, self.machine)
        self.state = result.state
        self.record = result.record
        self.commands = list(result.commands)
        return result

    def ready(self):
        return self.send(DialogueEvent.engine_ready())

    def speak_done(self):
        return self.send(DialogueEvent.speak_complete())

    def say(self, utterance, interpretation=None):
        return self.send(DialogueEvent.recognised(utterance, 0.9, interpretation))

    def silence(self):
        return self.send(DialogueEvent.no_input())

    def answer(self, utterance, interpretation=None):
        """Recognised utterance, then let the echo and the next prompt finish"""
        self.say(utterance, interpretation)
        self.speak_done()
        self.speak_done()


def who_is(name):
    return {
        "topIntent": "who_is_X",
        "intents": [{"category": "who_is_X", "confidenceScore": 0.97}],
        "entities": [{"category": "person", "text": name, "offset": 7, "length": len(name), "confidenceScore": 1.0}],
    }


@pytest.fixture
def grammar_driver(grammar_machine):
    driver = Driver(grammar_machine)
    driver.ready()
    driver.speak_done()
    driver.speak_done()
    return driver


@pytest.fixture
def nlu_driver(nlu_machine):
    driver = Driver(nlu_machine)
    driver.ready()
    driver.speak_done()
    return driver


# ============================================================================
# Machine definition
# ============================================================================

class TestMachineDefinition:
    """Test the static machine definition"""

    def test_start(self, grammar_machine):
        result = grammar_machine.start()
        assert result.state == DialogueState.PREPARE
        assert result.record == DialogueRecord()
        assert result.commands == (Command.prepare(),)

    def test_state_names(self):
        assert DialogueState.ASK_DAY_NO_INPUT.composite == "ask_day"
        assert DialogueState.ASK_DAY_NO_INPUT.phase == "no_input"
        assert DialogueState.DONE.phase is None

    def test_variant_states(self, grammar_machine, nlu_machine):
        assert DialogueState.ASK_PERSON_PROMPT in grammar_machine.states
        assert DialogueState.WHO_IS_X not in grammar_machine.states
        assert DialogueState.WHO_IS_X in nlu_machine.states
        assert DialogueState.ASK_PERSON_PROMPT not in nlu_machine.states
        assert DialogueState.ASK_FULL_DAY_PROMPT not in nlu_machine.states

    def test_from_config(self):
        machine = DialogueMachine.from_config(DialogueConfig(variant="nlu", max_reprompts=2))
        assert machine.variant == Variant.NLU
        assert machine.max_reprompts == 2

    def test_from_config_variant_override(self):
        machine = DialogueMachine.from_config(DialogueConfig(variant="nlu"), "grammar")
        assert machine.variant == Variant.GRAMMAR


# ============================================================================
# Grammar variant
# ============================================================================

class TestGrammarFlow:
    """Test the grammar slot-filling dialogue"""

    def test_greeting(self, grammar_machine):
        driver = Driver(grammar_machine)
        driver.ready()
        assert driver.state == DialogueState.GREETING_PROMPT
        assert driver.commands == [Command.speak("Let's create an appointment!")]

        driver.speak_done()
        assert driver.state == DialogueState.ASK_PERSON_PROMPT
        assert driver.commands == [Command.speak("Who are you meeting with?")]

    def test_listen_turn(self, grammar_driver):
        assert grammar_driver.state == DialogueState.ASK_PERSON_LISTEN
        assert grammar_driver.commands == [Command.listen(use_nlu=False)]

    def test_complete_booking(self, grammar_driver):
        """vlad, monday, no, 10, yes books the appointment"""
        for utterance in ["vlad", "monday", "no", "10"]:
            grammar_driver.answer(utterance)

        assert grammar_driver.state == DialogueState.CONFIRM_LISTEN

        result = grammar_driver.say("yes")

        assert result.state == DialogueState.APPOINTMENT_CREATED
        assert result.commands == (Command.speak("Your appointment has been created!"),)
        assert grammar_driver.record.person == "Vladislav Maraev"
        assert grammar_driver.record.day == "Monday"
        assert grammar_driver.record.time == "10:00"
        assert grammar_driver.record.confirmation == Confirmation.AFFIRMED
        assert grammar_driver.record.full_day is False

        grammar_driver.speak_done()
        assert grammar_driver.state == DialogueState.DONE
        assert grammar_driver.commands == []

    def test_echo(self, grammar_driver):
        result = grammar_driver.say("Vlad")
        assert result.state == DialogueState.ASK_PERSON_ECHO
        assert result.commands == (Command.speak("You just said: Vlad. And it is in the grammar."),)
        assert grammar_driver.record.person == "Vladislav Maraev"

    def test_listen_raises_completion_internally(self, grammar_driver):
        result = grammar_driver.say("vlad")
        assert [(line.event, line.label) for line in result.trace] == [
            ("recognised", "store result"),
            ("listen_complete", "recognised"),
        ]
        assert result.previous_state == DialogueState.ASK_PERSON_LISTEN

    def test_no_input_on_first_question(self, grammar_driver):
        result = grammar_driver.silence()

        assert result.state == DialogueState.ASK_PERSON_NO_INPUT
        assert result.commands == (Command.speak("I can't hear you! Who are you meeting with?"),)
        assert grammar_driver.record.person is None

        grammar_driver.speak_done()
        assert grammar_driver.state == DialogueState.ASK_PERSON_LISTEN
        assert grammar_driver.commands == [Command.listen(use_nlu=False)]

    def test_out_of_grammar_day(self, grammar_driver):
        grammar_driver.answer("vlad")
        assert grammar_driver.state == DialogueState.ASK_DAY_LISTEN

        grammar_driver.say("banana")
        assert grammar_driver.commands == [
            Command.speak("You just said: banana. And it is not in the grammar.")
        ]

        grammar_driver.speak_done()
        assert grammar_driver.state == DialogueState.ASK_DAY_PROMPT
        assert grammar_driver.commands == [Command.speak(PROMPTS["ask_day"])]
        assert grammar_driver.record.day is None
        assert grammar_driver.record.person == "Vladislav Maraev"

    def test_wrong_slot_value_reasks(self, grammar_driver):
        """A known phrase for another slot does not fill the asked one"""
        grammar_driver.say("monday")
        grammar_driver.speak_done()
        assert grammar_driver.state == DialogueState.ASK_PERSON_PROMPT
        assert grammar_driver.record.person is None
        assert grammar_driver.record.day is None

    def test_yes_to_slot_question_is_not_a_confirmation(self, grammar_driver):
        result = grammar_driver.say("yes")

        assert result.state == DialogueState.ASK_PERSON_ECHO
        assert grammar_driver.record.confirmation is None
        assert grammar_driver.record.person is None

    def test_yes_to_time_question_is_not_a_confirmation(self, grammar_driver):
        for utterance in ["vlad", "monday", "no"]:
            grammar_driver.answer(utterance)
        grammar_driver.say("sure")

        assert grammar_driver.state == DialogueState.ASK_TIME_ECHO
        assert grammar_driver.record.confirmation is None

    def test_whole_day_skips_time(self, grammar_driver):
        grammar_driver.answer("bella")
        grammar_driver.answer("friday")
        grammar_driver.say("yes")
        grammar_driver.speak_done()

        assert grammar_driver.state == DialogueState.CONFIRM_PROMPT
        assert grammar_driver.record.full_day is True
        assert grammar_driver.record.confirmation is None
        assert grammar_driver.commands == [
            Command.speak("Do you want me to create an appointment with Bella Du on Friday for the whole day?")
        ]

    def test_confirmation_question(self, grammar_driver):
        for utterance in ["xin", "tomorrow", "no way"]:
            grammar_driver.answer(utterance)
        grammar_driver.say("afternoon")
        grammar_driver.speak_done()

        assert grammar_driver.commands == [
            Command.speak("Do you want me to create an appointment with Xin Bian on Tomorrow at 14:30?")
        ]

    def test_unclear_whole_day_answer_reasks(self, grammar_driver):
        grammar_driver.answer("vlad")
        grammar_driver.answer("monday")
        grammar_driver.say("maybe")
        grammar_driver.speak_done()

        assert grammar_driver.state == DialogueState.ASK_FULL_DAY_PROMPT
        assert grammar_driver.record.full_day is None


class TestConfirmation:
    """Test the final yes/no question"""

    @pytest.fixture
    def confirming(self, grammar_driver):
        for utterance in ["vlad", "monday", "no", "10"]:
            grammar_driver.answer(utterance)
        return grammar_driver

    def test_denial_restarts(self, confirming):
        result = confirming.say("no")

        assert result.state == DialogueState.GREETING_PROMPT
        assert result.record == DialogueRecord()
        assert result.commands == (Command.speak("Let's create an appointment!"),)

    def test_not_yes_or_no_clarifies(self, confirming):
        result = confirming.say("perhaps")

        assert result.state == DialogueState.CONFIRM_CLARIFY
        assert result.commands == (Command.speak(
            "Please answer yes or no. "
            "Do you want me to create an appointment with Vladislav Maraev on Monday at 10:00?"
        ),)
        assert confirming.record.confirmation is None

        confirming.speak_done()
        assert confirming.state == DialogueState.CONFIRM_LISTEN

    def test_no_input_repeats_question(self, confirming):
        result = confirming.silence()

        assert result.state == DialogueState.CONFIRM_NO_INPUT
        assert result.commands[0].utterance.startswith("I didn't hear that! Do you want me to create")

    def test_affirmation_variants(self, confirming):
        assert confirming.say("Of Course").state == DialogueState.APPOINTMENT_CREATED


# ============================================================================
# Interrupts and unhandled events
# ============================================================================

class TestUnhandledEvents:
    """Events without an enabled transition change nothing"""

    def test_click_ignored_mid_dialogue(self, grammar_driver):
        record = grammar_driver.record
        result = grammar_driver.send(DialogueEvent.click())

        assert not result.handled
        assert result.state == DialogueState.ASK_PERSON_LISTEN
        assert result.record is record
        assert result.commands == ()

    def test_speak_complete_ignored_while_listening(self, grammar_driver):
        result = grammar_driver.speak_done()
        assert not result.handled
        assert result.state == DialogueState.ASK_PERSON_LISTEN

    def test_recognised_ignored_while_speaking(self, grammar_machine):
        driver = Driver(grammar_machine)
        driver.ready()
        result = driver.say("vlad")
        assert not result.handled
        assert driver.record.person is None

    def test_click_restarts_when_done(self, grammar_driver):
        for utterance in ["vlad", "monday", "no", "10"]:
            grammar_driver.answer(utterance)
        grammar_driver.say("yes")
        grammar_driver.speak_done()
        assert grammar_driver.state == DialogueState.DONE

        result = grammar_driver.send(DialogueEvent.click())

        assert result.state == DialogueState.GREETING_PROMPT
        assert result.record == DialogueRecord()
        assert result.commands == (Command.speak("Let's create an appointment!"),)


# ============================================================================
# Reprompt policy
# ============================================================================

class TestReprompts:
    """Test reprompt counting and the optional cap"""

    def test_unbounded_by_default(self, grammar_driver):
        for _ in range(20):
            grammar_driver.silence()
            grammar_driver.speak_done()
        assert grammar_driver.state == DialogueState.ASK_PERSON_LISTEN
        assert grammar_driver.record.reprompts == 20

    def test_cap_abandons(self):
        driver = Driver(DialogueMachine(variant=Variant.GRAMMAR, max_reprompts=2))
        driver.ready()
        driver.speak_done()
        driver.speak_done()

        for _ in range(2):
            driver.silence()
            assert driver.state == DialogueState.ASK_PERSON_NO_INPUT
            driver.speak_done()

        result = driver.silence()
        assert result.state == DialogueState.ABANDONED
        assert result.commands == (Command.speak(PROMPTS["abandoned"]),)

        driver.speak_done()
        assert driver.state == DialogueState.DONE

    def test_counter_resets_on_progress(self, grammar_driver):
        grammar_driver.silence()
        grammar_driver.speak_done()
        assert grammar_driver.record.reprompts == 1

        grammar_driver.answer("vlad")
        assert grammar_driver.record.reprompts == 0


# ============================================================================
# NLU variant
# ============================================================================

class TestNLUFlow:
    """Test the greeting routed by top intent"""

    def test_greeting(self, nlu_machine):
        driver = Driver(nlu_machine)
        driver.ready()
        assert driver.commands == [Command.speak("How can I help you today?")]
        driver.speak_done()
        assert driver.state == DialogueState.GREETING_LISTEN
        assert driver.commands == [Command.listen(use_nlu=True)]

    def test_who_is_known_person(self, nlu_driver):
        result = nlu_driver.say("who is Taylor", who_is("Taylor"))

        assert result.state == DialogueState.WHO_IS_X
        assert result.commands == (Command.speak(FAMOUS_PEOPLE["Taylor"]),)

        nlu_driver.speak_done()
        assert nlu_driver.state == DialogueState.DONE

    def test_who_is_unknown_person(self, nlu_driver):
        result = nlu_driver.say("who is Bob", who_is("Bob"))
        assert result.commands == (Command.speak("Sorry, I don't have info on Bob."),)

    def test_who_is_ignores_case(self, nlu_driver):
        result = nlu_driver.say("who is rosé", who_is("rosé"))
        assert result.commands == (Command.speak(FAMOUS_PEOPLE["Rosé"]),)

    def test_who_is_without_person(self, nlu_driver):
        interpretation = who_is("Taylor")
        interpretation["entities"] = []
        result = nlu_driver.say("who is that", interpretation)
        assert result.commands == (Command.speak("I couldn't identify the person."),)

    def test_create_meeting(self, nlu_driver):
        interpretation = {
            "topIntent": "createMeeting",
            "intents": [{"category": "createMeeting", "confidenceScore": 0.92}],
            "entities": [
                {"category": "person", "text": "Vlad", "offset": 26, "length": 4, "confidenceScore": 0.9},
                {"category": "meeting_day", "text": "Friday", "offset": 34, "length": 6, "confidenceScore": 0.9},
            ],
        }
        result = nlu_driver.say("create a meeting with Vlad on Friday", interpretation)

        assert result.state == DialogueState.ASK_DAY_PROMPT
        assert result.commands == (Command.speak(PROMPTS["ask_day"]),)
        assert nlu_driver.record.person == "Vlad"
        assert nlu_driver.record.day == "Friday"

        nlu_driver.speak_done()
        nlu_driver.answer("tomorrow")
        assert nlu_driver.state == DialogueState.ASK_TIME_LISTEN
        assert nlu_driver.record.day == "Tomorrow"

        nlu_driver.say("morning")
        nlu_driver.speak_done()
        assert nlu_driver.commands == [
            Command.speak("Do you want me to create an appointment with Vlad on Tomorrow at 9:00?")
        ]

        nlu_driver.speak_done()
        assert nlu_driver.say("sure").state == DialogueState.APPOINTMENT_CREATED

    def test_nlu_entities_fill_slot_turn(self, nlu_driver):
        nlu_driver.say("set up a meeting", {"topIntent": "createMeeting"})
        nlu_driver.speak_done()

        interpretation = {
            "topIntent": "None",
            "entities": [{"category": "meeting_day", "text": "the 5th of May"}],
        }
        nlu_driver.say("the 5th of May", interpretation)
        nlu_driver.speak_done()

        assert nlu_driver.state == DialogueState.ASK_TIME_PROMPT
        assert nlu_driver.record.day == "the 5th of May"

    def test_unknown_intent(self, nlu_driver):
        result = nlu_driver.say("order a pizza", {"topIntent": "None", "intents": [], "entities": []})

        assert result.state == DialogueState.UNKNOWN_INTENT
        assert result.commands == (Command.speak("Sorry, I didn't understand that!"),)

        nlu_driver.speak_done()
        assert nlu_driver.state == DialogueState.GREETING_PROMPT
        assert nlu_driver.record.reprompts == 1

    def test_missing_interpretation_is_unknown(self, nlu_driver):
        assert nlu_driver.say("hello").state == DialogueState.UNKNOWN_INTENT

    def test_greeting_no_input(self, nlu_driver):
        result = nlu_driver.silence()
        assert result.state == DialogueState.GREETING_NO_INPUT
        assert result.commands == (Command.speak("I can't hear you! How can I help you today?"),)
