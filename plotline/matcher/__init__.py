"""Input matching: resolve free-text player input to one of the options.

Tiers (first hit wins):
  exact     — case-insensitive, whitespace-collapsed text or alias equality
  keyword   — most shared words of three letters or more; ties go first
  semantic  — one awaited request to an external matcher, accepted at
              confidence >= 0.7 (fails open: errors mean no match)

Options come from the wait gate at the current coordinate, or from the
whole scene once the coordinate is past its last gate (implicit loop-back).
A matched option's response block is walked without side effects; counter
changes come back as metadata for the caller to apply.
"""

from .core import (  # noqa: F401
    MIN_SIMILARITY_SCORE,
    OptionMatch,
    OptionOutcome,
    match_input,
    match_option,
    process_option_then,
)
from .keywords import exact_match, keyword_match, tokenize  # noqa: F401
from .options import get_options_at_position  # noqa: F401
from .semantic import (  # noqa: F401
    LLMSemanticMatcher,
    SemanticMatcher,
    parse_match_response,
)
