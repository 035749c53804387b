"""Tests for Handlebars prompt rendering: compilation, the join helper, the
match template, and error handling."""

import pytest

from plotline.prompts import MATCH_TEMPLATE, PromptError, render_prompt


# ── render_prompt ────────────────────────────────────────────


def test_render_simple_variable():
    assert render_prompt("Hello {{name}}!", {"name": "World"}) == "Hello World!"


def test_render_each_loop_with_index():
    tpl = "{{#each items}}{{@index}}={{this}} {{/each}}"
    assert render_prompt(tpl, {"items": ["a", "b"]}) == "0=a 1=b "


def test_render_missing_variable():
    assert render_prompt("Hello {{name}}!", {}) == "Hello !"


def test_render_invalid_template():
    with pytest.raises(PromptError):
        render_prompt("{{> missing_partial}}", {})


# ── helpers ──────────────────────────────────────────────────


def test_join_helper():
    assert render_prompt('{{join items ", "}}', {"items": ["run", "flee"]}) == "run, flee"


def test_join_helper_empty():
    assert render_prompt('[{{join items " | "}}]', {"items": []}) == "[]"


# ── MATCH_TEMPLATE ───────────────────────────────────────────


def test_match_template_lists_options_after_examples():
    prompt = render_prompt(MATCH_TEMPLATE, {
        "input": "climb the tree",
        "options": [
            {"text": "Climb the oak", "aliases": ["scale the tree"]},
            {"text": "Walk away", "aliases": []},
        ],
    })
    examples_end = prompt.index('"normalizedInput": "eat sandwich"}')
    listing = prompt[examples_end:]
    assert '0: "Climb the oak" (also: scale the tree)\n' in listing
    assert '1: "Walk away"\n' in listing
    assert 'Player input: "climb the tree"' in listing
