"""
Local pattern interpreter

Produces NLU-shaped results ({topIntent, intents, entities}) from regex
rules, so the NLU variant can run on the console or in tests without the
cloud language service.
"""

import logging
import re
from typing import Any, Dict, List, Optional

from .patterns import compile_patterns, load_intent_patterns

logger = logging.getLogger(__name__)

REGEX_CONFIDENCE = 0.95
KEYWORD_CONFIDENCE = 0.6
NO_INTENT = "None"


class PatternInterpreter:
    """
    Regex/keyword interpreter for the booking intents.

    Intents are tried in the order `load_intent_patterns()` lists them; a
    regex match beats a keyword match.
    """

    def __init__(self, patterns: Optional[Dict[str, Any]] = None):
        self.patterns = patterns or load_intent_patterns()
        self.compiled_patterns = compile_patterns(self.patterns)
        self.intent_names = [name for name in self.patterns if name != "entities"]

    def interpret(self, text: str) -> Dict[str, Any]:
        """Interpret one utterance; the result uses the NLU wire format."""
        text = text.strip()
        lowered = text.lower()

        scores: List[Dict[str, Any]] = []
        person_span = None
        for name in self.intent_names:
            compiled = self.compiled_patterns[name]
            match = next(
                (m for m in (p.search(text) for p in compiled["regex_patterns"]) if m),
                None,
            )
            if match:
                scores.append({"category": name, "confidenceScore": REGEX_CONFIDENCE})
                if person_span is None and "person" in match.groupdict():
                    person_span = match.span("person")
            elif any(keyword in lowered for keyword in compiled.get("keywords", [])):
                scores.append({"category": name, "confidenceScore": KEYWORD_CONFIDENCE})

        scores.sort(key=lambda s: s["confidenceScore"], reverse=True)
        top = scores[0]["category"] if scores else NO_INTENT

        entities = self._entities(text, top, person_span)
        logger.debug(f"Interpreted {text!r} as {top} with {len(entities)} entities")

        return {
            "topIntent": top,
            "intents": scores,
            "entities": entities,
        }

    def _entities(self, text: str, top: str, person_span) -> List[Dict[str, Any]]:
        entities = []
        if top == "who_is_X" and person_span is not None:
            entities.append(self._entity("person", text, *person_span))

        if top == "createMeeting":
            for category, pattern in self.compiled_patterns["entities"]["entity_patterns"].items():
                match = pattern.search(text)
                if match:
                    entities.append(self._entity(category, text, *match.span("value")))

        return entities

    @staticmethod
    def _entity(category: str, text: str, start: int, end: int) -> Dict[str, Any]:
        return {
            "category": category,
            "text": re.sub(r"\s+", " ", text[start:end]),
            "confidenceScore": REGEX_CONFIDENCE,
            "offset": start,
            "length": end - start,
        }
