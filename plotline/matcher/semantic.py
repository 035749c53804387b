"""Semantic matching through an external model.

The matcher core only sees the `SemanticMatcher` protocol:

    async def __call__(self, player_input: str, options: list[OptionEntry]) -> SemanticMatch

`LLMSemanticMatcher` is the production implementation. It renders a
few-shot Handlebars prompt, sends it to an LLM and reads back one JSON
object:

    {"optionIndex": 2, "confidence": 0.88, "normalizedInput": "talk to dragon"}

Thresholding happens in the core, not here, so the raw confidence is
always reported.
"""

from __future__ import annotations

import json
import logging
from typing import Protocol

from plotline.llm import LLM
from plotline.models import OptionEntry, SemanticMatch
from plotline.prompts import MATCH_TEMPLATE, render_prompt

logger = logging.getLogger(__name__)


class SemanticMatcher(Protocol):
    async def __call__(self, player_input: str, options: list[OptionEntry]) -> SemanticMatch: ...


def parse_match_response(text: str) -> SemanticMatch:
    """Read the first JSON object out of a model answer.

    Anything unreadable is "no match" with zero confidence.
    """
    start = text.find("{")
    if start < 0:
        logger.debug("semantic answer has no JSON object: %r", text[:200])
        return SemanticMatch()
    try:
        data, _ = json.JSONDecoder().raw_decode(text, start)
    except json.JSONDecodeError:
        logger.debug("semantic answer is not valid JSON: %r", text[:200])
        return SemanticMatch()
    if not isinstance(data, dict):
        return SemanticMatch()

    index = data.get("optionIndex")
    if isinstance(index, bool) or not isinstance(index, int):
        index = None
    try:
        confidence = float(data.get("confidence") or 0.0)
    except (TypeError, ValueError):
        confidence = 0.0
    normalized = data.get("normalizedInput")

    return SemanticMatch(
        matched=index is not None,
        index=index,
        confidence=confidence,
        normalized_input=normalized if isinstance(normalized, str) else None,
    )


class LLMSemanticMatcher:
    """SemanticMatcher backed by an LLM completion call.

    Raises whatever the LLM raises (`LLMError`) or `PromptError` from
    rendering; the matcher core treats any exception as no match.
    """

    def __init__(self, llm: LLM, template: str = MATCH_TEMPLATE) -> None:
        self._llm = llm
        self._template = template

    def build_prompt(self, player_input: str, options: list[OptionEntry]) -> str:
        context = {
            "input": player_input,
            "options": [{"text": o.text, "aliases": o.aliases or []} for o in options],
        }
        return render_prompt(self._template, context)

    async def __call__(self, player_input: str, options: list[OptionEntry]) -> SemanticMatch:
        if not player_input.strip() or not options:
            return SemanticMatch()
        answer = await self._llm("match", self.build_prompt(player_input, options))
        result = parse_match_response(answer)
        logger.debug(
            "semantic answer index=%s confidence=%.2f", result.index, result.confidence
        )
        return result
