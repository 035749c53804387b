"""Input matching: free text in, chosen option and next coordinate out.

Tiers run in strict order and the first hit wins:

    exact      input equals an option text or alias
    keyword    most shared keywords (three letters or more)
    semantic   one awaited request to the external matcher; accepted only
               at or above `min_confidence` with an index in range

The semantic tier is the only suspension point. It fails open: any
exception it raises is logged and the input is simply unmatched, so the
caller can escalate (e.g. to content generation).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from plotline.conditions import HasVariable, check_condition
from plotline.matcher.keywords import exact_match, keyword_match
from plotline.matcher.options import get_options_at_position
from plotline.matcher.semantic import SemanticMatcher
from plotline.models import (
    END,
    ConditionalEntry,
    DisplayEntry,
    ImageEntry,
    JumpEntry,
    MatchResult,
    MatchTier,
    MetadataEntry,
    NarrativeEntry,
    OptionEntry,
    Schema,
    SchemaEntry,
)
from plotline.scene_map import SceneMap
from plotline.variables import normalize_name

logger = logging.getLogger(__name__)

MIN_SIMILARITY_SCORE = 0.7


@dataclass
class OptionMatch:
    index: int
    tier: MatchTier
    alias: str | None = None
    confidence: float | None = None


async def match_option(
    player_input: str,
    options: list[OptionEntry],
    semantic_matcher: SemanticMatcher | None = None,
    min_confidence: float = MIN_SIMILARITY_SCORE,
    min_keyword_score: int = 1,
) -> OptionMatch | None:
    """Pick one of `options` for the input, or None."""
    if not options:
        return None

    hit = exact_match(player_input, options)
    if hit is not None:
        logger.debug("exact match option=%d", hit.index)
        return OptionMatch(hit.index, "exact", hit.alias)

    hit = keyword_match(player_input, options, min_keyword_score)
    if hit is not None:
        logger.debug("keyword match option=%d score=%d", hit.index, hit.score)
        return OptionMatch(hit.index, "keyword", hit.alias)

    if semantic_matcher is None:
        return None

    try:
        answer = await semantic_matcher(player_input, options)
    except Exception:
        logger.warning("semantic matcher failed, treating input as unmatched", exc_info=True)
        return None

    if (
        answer.matched
        and answer.index is not None
        and 0 <= answer.index < len(options)
        and answer.confidence >= min_confidence
    ):
        logger.debug("semantic match option=%d confidence=%.2f", answer.index, answer.confidence)
        return OptionMatch(answer.index, "semantic", confidence=answer.confidence)

    logger.debug("semantic answer rejected index=%s confidence=%.2f", answer.index, answer.confidence)
    return None


# ---------------------------------------------------------------------------
# Option response
# ---------------------------------------------------------------------------

@dataclass
class OptionOutcome:
    narratives: list[DisplayEntry]
    metadata: list[MetadataEntry]
    target: str | None


def process_option_then(option: OptionEntry, has: HasVariable) -> OptionOutcome:
    """Walk an option's response block without mutating anything.

    Counter changes are collected as metadata for the caller to apply.
    Later conditionals in the same block already see them. The first jump
    ends the walk.
    """
    narratives: list[DisplayEntry] = []
    metadata: list[MetadataEntry] = []
    delta: dict[str, int] = {}

    def pending_has(name: str, threshold: int = 1) -> bool:
        shifted = threshold - delta.get(normalize_name(name), 0)
        if shifted <= 0:
            return True
        return bool(has(name)) if shifted == 1 else bool(has(name, shifted))

    def walk(entries: list[SchemaEntry]) -> str | None:
        for entry in entries:
            if isinstance(entry, (NarrativeEntry, ImageEntry)):
                narratives.append(entry)
            elif isinstance(entry, MetadataEntry):
                if entry.key in ("sets", "unsets"):
                    metadata.append(entry)
                    key = normalize_name(entry.value)
                    delta[key] = delta.get(key, 0) + (1 if entry.key == "sets" else -1)
            elif isinstance(entry, ConditionalEntry):
                branch = entry.then if check_condition(entry.condition, pending_has) else (entry.else_ or [])
                target = walk(branch)
                if target is not None:
                    return target
            elif isinstance(entry, JumpEntry):
                return entry.target.strip()
        return None

    target = walk(option.then)
    return OptionOutcome(narratives, metadata, target)


async def match_input(
    schema: Schema,
    scene_map: SceneMap,
    scene_id: str,
    line_idx: int,
    player_input: str,
    has: HasVariable,
    semantic_matcher: SemanticMatcher | None = None,
    min_confidence: float = MIN_SIMILARITY_SCORE,
    min_keyword_score: int = 1,
) -> MatchResult:
    """Resolve player input at a coordinate. Never raises."""
    options = get_options_at_position(schema, scene_map, scene_id, line_idx, has)
    if not options:
        logger.debug("no options at %s-%d", scene_id, line_idx)
        return MatchResult(matched=False)

    chosen = await match_option(
        player_input,
        options,
        semantic_matcher,
        min_confidence=min_confidence,
        min_keyword_score=min_keyword_score,
    )
    if chosen is None:
        return MatchResult(matched=False)

    option = options[chosen.index]
    outcome = process_option_then(option, has)

    if outcome.target == END:
        next_scene, next_idx = END, 0
    elif outcome.target is not None:
        next_scene, next_idx = outcome.target, 0
    else:
        next_scene, next_idx = scene_id, line_idx

    return MatchResult(
        matched=True,
        scene_id=next_scene,
        line_idx=next_idx,
        option_text=option.text,
        narratives=outcome.narratives,
        metadata=outcome.metadata,
        tier=chosen.tier,
        matched_alias=chosen.alias,
        confidence=chosen.confidence,
        suggested_alias=player_input.strip() if chosen.tier == "semantic" else None,
    )
