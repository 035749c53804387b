"""Deterministic matching tiers: exact text and shared keywords."""

from __future__ import annotations

import re
from typing import NamedTuple

from plotline.models import OptionEntry

_SPLIT_RE = re.compile(r"""[\s,.!?;:'"()-]+""")

MIN_KEYWORD_LENGTH = 3


class TierHit(NamedTuple):
    index: int
    alias: str | None = None  # the alias that matched, None for the option text
    score: int = 0


def tokenize(text: str) -> set[str]:
    return {word for word in _SPLIT_RE.split(text.lower()) if word}


def normalize_text(text: str) -> str:
    return " ".join(text.lower().split())


def exact_match(player_input: str, options: list[OptionEntry]) -> TierHit | None:
    """Case-insensitive, whitespace-collapsed equality with text or alias."""
    wanted = normalize_text(player_input)
    if not wanted:
        return None
    for i, option in enumerate(options):
        if normalize_text(option.text) == wanted:
            return TierHit(i)
        for alias in option.aliases or []:
            if normalize_text(alias) == wanted:
                return TierHit(i, alias)
    return None


def keyword_score(input_tokens: set[str], text: str) -> int:
    """Number of input keywords (three letters or more) found in `text`."""
    candidate = tokenize(text)
    return sum(1 for word in input_tokens if len(word) >= MIN_KEYWORD_LENGTH and word in candidate)


def keyword_match(
    player_input: str,
    options: list[OptionEntry],
    min_score: int = 1,
) -> TierHit | None:
    """Option sharing the most keywords with the input.

    Each option scores the best of its text and aliases. Only a strictly
    higher score replaces the leader, so ties go to the earlier option.
    """
    tokens = tokenize(player_input)
    best: TierHit | None = None
    for i, option in enumerate(options):
        score = keyword_score(tokens, option.text)
        alias = None
        for candidate in option.aliases or []:
            alias_score = keyword_score(tokens, candidate)
            if alias_score > score:
                score, alias = alias_score, candidate
        if score > (best.score if best else 0):
            best = TierHit(i, alias, score)

    if best is None or best.score < max(min_score, 1):
        return None
    return best
