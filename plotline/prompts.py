"""Handlebars prompt rendering."""

from collections.abc import Callable
from typing import Any

import pybars


_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}


class PromptError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


# ── Custom Handlebars helpers ────────────────────────────


def _helper_join(this, items, separator=", "):
    """{{join array ", "}} — items joined into one string."""
    return str(separator).join(str(item) for item in (items or []))


_HELPERS: dict[str, Callable] = {
    "join": _helper_join,
}


def render_prompt(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    Templates are cached by source string to avoid recompilation.
    """
    try:
        compiled = _cache.get(template_str)
        if compiled is None:
            compiled = _compiler.compile(template_str)
            _cache[template_str] = compiled
        return str(compiled(context, helpers=_HELPERS))
    except Exception as e:
        raise PromptError(f"Template error: {e}") from e


# ── Templates ────────────────────────────────────────────

_MATCH_INSTRUCTIONS = (
    "Return the most similar option with its similarity probability. "
    "Consider synonyms, intent, and paraphrasing.\n"
    'Respond in JSON: {"optionIndex": <number>, "confidence": <0.0-1.0>, '
    '"normalizedInput": "<short normalized version>"}'
)

MATCH_TEMPLATE = (
    "You are matching player input to game options. Find the most similar "
    "option and return a similarity probability.\n"
    "\n"
    "Available options:\n"
    '0: "Go to the forest"\n'
    '1: "Visit the castle"\n'
    '2: "Stay home"\n'
    "\n"
    'Player input: "I want to explore the woods"\n'
    "\n" + _MATCH_INSTRUCTIONS + "\n"
    '{"optionIndex": 0, "confidence": 0.92, "normalizedInput": "go to forest"}\n'
    "\n"
    "Available options:\n"
    '0: "Fight the dragon"\n'
    '1: "Run away"\n'
    '2: "Talk to the dragon"\n'
    "\n"
    "Player input: \"let's chat with it\"\n"
    "\n" + _MATCH_INSTRUCTIONS + "\n"
    '{"optionIndex": 2, "confidence": 0.88, "normalizedInput": "talk to dragon"}\n'
    "\n"
    "Available options:\n"
    '0: "Open the door"\n'
    '1: "Look through the window"\n'
    "\n"
    'Player input: "eat a sandwich"\n'
    "\n" + _MATCH_INSTRUCTIONS + "\n"
    '{"optionIndex": 0, "confidence": 0.05, "normalizedInput": "eat sandwich"}\n'
    "\n"
    "Available options:\n"
    "{{#each options}}"
    '{{@index}}: "{{{text}}}"{{#if aliases}} (also: {{{join aliases ", "}}}){{/if}}\n'
    "{{/each}}"
    "\n"
    'Player input: "{{{input}}}"\n'
    "\n" + _MATCH_INSTRUCTIONS + "\n"
)
