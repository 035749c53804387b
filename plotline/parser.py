"""Script parser: indented plaintext lines → Schema.

    @SCENE [allows: new]       scene header, optional generation hint
    goto @SCENE                jump (goto @END ends the story)
    if Choice | alias & ?key   option; indented lines below are its response
    when turn >= 3             conditional block, `else` at the same depth
    +key / -key                increment / decrement a counter
    [image: url]               image
    [key: value]               metadata
    anything else              narrative

Legacy forms are still read: `if [key]` and `[if: key]` open a conditional,
`[else]` opens its else branch, `& [key]` gates an option, `[sets: key]` and
`[unsets: key]` mutate counters.

Leading stars count as indentation (`* text` is one level, `** text` two).

Parsing never fails. A line that does not fit its prefix's grammar is kept
as narrative text so no authored content is lost.
"""

from __future__ import annotations

import re

from plotline.conditions import NAME_PATTERN, parse_condition
from plotline.models import (
    ConditionalEntry,
    ImageEntry,
    JumpEntry,
    MetadataEntry,
    NarrativeEntry,
    OptionEntry,
    Schema,
    SceneEntry,
    SchemaEntry,
)

STAR_WIDTH = 2
TAB_WIDTH = 4
IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg")
ELSE_MARKERS = ("else", "[else]")

_STARS_RE = re.compile(r"^(\s*)(\*+)(?=\s)")
_SCENE_RE = re.compile(r"^@\s*(?P<label>.*?)\s*(?:\[allows:\s*(?P<allows>[^\]]*?)\s*\])?$")
_MUTATION_RE = re.compile(rf"^(?P<sign>[+-])(?P<name>{NAME_PATTERN})$")
_METADATA_RE = re.compile(r"^\[(?P<key>\w+):\s*(?P<value>.+?)\s*\]$")
_LEGACY_IF_RE = re.compile(r"^if\s+\[(?P<cond>[^\]]+)\]$")
REQUIRES_RE = re.compile(
    rf"&\s*(?:\?\s*(?P<q>!?\s*{NAME_PATTERN})|\[\s*(?P<b>!?\s*{NAME_PATTERN})\s*\])\s*$"
)


# ---------------------------------------------------------------------------
# Indentation
# ---------------------------------------------------------------------------

def _expand_stars(line: str) -> str:
    """Rewrite `** text` as four columns of indentation."""
    m = _STARS_RE.match(line)
    if not m:
        return line
    stars = len(m.group(2))
    return m.group(1) + " " * (STAR_WIDTH * stars) + line[m.end():].lstrip()


def get_indent_level(line: str) -> int:
    expanded = line.expandtabs(TAB_WIDTH)
    return len(expanded) - len(expanded.lstrip())


def _collect_block(lines: list[str], start: int, indent: int) -> tuple[list[str], int]:
    """Return the lines nested deeper than `indent` and the index after them.

    Blank lines inside the block never close it.
    """
    i = start
    end = start
    while i < len(lines):
        line = lines[i]
        if not line.strip():
            i += 1
            continue
        if get_indent_level(line) <= indent:
            break
        i += 1
        end = i
    return lines[start:end], end


def _next_content(lines: list[str], start: int) -> int:
    i = start
    while i < len(lines) and not lines[i].strip():
        i += 1
    return i


# ---------------------------------------------------------------------------
# Single-line classification
# ---------------------------------------------------------------------------

def parse_option_line(content: str) -> OptionEntry | None:
    """Parse the part after `if `: `Choice text | alias | alias & ?key`."""
    requires = None
    m = REQUIRES_RE.search(content)
    if m:
        requires = re.sub(r"\s+", "", m.group("q") or m.group("b"))
        content = content[: m.start()].strip()

    parts = [p.strip() for p in content.split("|")]
    text = parts[0]
    if not text:
        return None
    aliases = [p for p in parts[1:] if p]
    return OptionEntry(text=text, aliases=aliases or None, requires=requires)


def _conditional(expr: str, fallback: str) -> SchemaEntry:
    expr = expr.strip()
    if parse_condition(expr) is None:
        return NarrativeEntry(text=fallback)
    return ConditionalEntry(condition=expr)


def _image(url: str) -> SchemaEntry:
    lowered = url.lower()
    if any(lowered.endswith(ext) or f"{ext}?" in lowered for ext in IMAGE_EXTENSIONS):
        return ImageEntry(url=url)
    return NarrativeEntry(text=f"[Invalid image URL: {url}]")


def _parse_line(trimmed: str) -> SchemaEntry:
    if trimmed.startswith("@"):
        m = _SCENE_RE.match(trimmed)
        if m and m.group("label"):
            return SceneEntry(label=m.group("label"), allows=m.group("allows") or None)
        return NarrativeEntry(text=trimmed)

    if trimmed.startswith("goto "):
        target = trimmed[5:].strip()
        if target.startswith("@"):
            target = target[1:].strip()
        if target:
            return JumpEntry(target=target)
        return NarrativeEntry(text=trimmed)

    if trimmed.startswith("when "):
        return _conditional(trimmed[5:], trimmed)

    m = _LEGACY_IF_RE.match(trimmed)
    if m:
        return _conditional(m.group("cond"), trimmed)

    if trimmed.startswith("if "):
        option = parse_option_line(trimmed[3:].strip())
        return option if option is not None else NarrativeEntry(text=trimmed)

    m = _MUTATION_RE.match(trimmed)
    if m:
        key = "sets" if m.group("sign") == "+" else "unsets"
        return MetadataEntry(key=key, value=m.group("name"))

    m = _METADATA_RE.match(trimmed)
    if m:
        key, value = m.group("key"), m.group("value")
        if key == "image":
            return _image(value)
        if key == "if":
            return _conditional(value, trimmed)
        return MetadataEntry(key=key, value=value)

    return NarrativeEntry(text=trimmed)


# ---------------------------------------------------------------------------
# Block parsing
# ---------------------------------------------------------------------------

def _parse_block(lines: list[str]) -> Schema:
    schema: Schema = []
    i = 0
    while i < len(lines):
        raw = lines[i]
        trimmed = raw.strip()
        if not trimmed:
            i += 1
            continue

        indent = get_indent_level(raw)
        entry = _parse_line(trimmed)
        i += 1

        if isinstance(entry, (OptionEntry, ConditionalEntry)):
            body, i = _collect_block(lines, i, indent)
            entry.then = _parse_block(body)

        if isinstance(entry, ConditionalEntry):
            j = _next_content(lines, i)
            if (
                j < len(lines)
                and get_indent_level(lines[j]) == indent
                and lines[j].strip() in ELSE_MARKERS
            ):
                body, i = _collect_block(lines, j + 1, indent)
                entry.else_ = _parse_block(body)

        schema.append(entry)
    return schema


def parse_into_schema(lines: list[str]) -> Schema:
    """Parse script lines into a Schema. Never raises."""
    return _parse_block([_expand_stars(line) for line in lines])
