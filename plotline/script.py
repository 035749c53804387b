"""Script text helpers: schema → lines, and alias write-back.

When the semantic tier matches a phrasing the author never wrote, the
session saves it as a new alias so the next player gets an exact match:

    if Ride a bike              →  if Ride a bike | cycle
    if Ride a bike | cycle      →  if Ride a bike | cycle | pedal
"""

from __future__ import annotations

import re

from plotline.models import (
    ConditionalEntry,
    ImageEntry,
    JumpEntry,
    MetadataEntry,
    NarrativeEntry,
    OptionEntry,
    Schema,
    SceneEntry,
)
from plotline.parser import REQUIRES_RE, parse_option_line

INDENT = "  "

_PREFIX_RE = re.compile(r"^(\s*(?:\*+\s+)?)")


# ---------------------------------------------------------------------------
# Serialisation
# ---------------------------------------------------------------------------

def _option_line(option: OptionEntry) -> str:
    parts = [option.text, *(option.aliases or [])]
    line = "if " + " | ".join(parts)
    if option.requires:
        line += f" & ?{option.requires}"
    return line


def serialize_schema(schema: Schema, depth: int = 0) -> list[str]:
    """Write a schema back out as script lines, two spaces per level."""
    pad = INDENT * depth
    lines: list[str] = []
    for entry in schema:
        if isinstance(entry, NarrativeEntry):
            lines.append(pad + entry.text)
        elif isinstance(entry, SceneEntry):
            header = f"@{entry.label}"
            if entry.allows:
                header += f" [allows: {entry.allows}]"
            lines.append(pad + header)
        elif isinstance(entry, JumpEntry):
            lines.append(f"{pad}goto @{entry.target}")
        elif isinstance(entry, OptionEntry):
            lines.append(pad + _option_line(entry))
            lines.extend(serialize_schema(entry.then, depth + 1))
        elif isinstance(entry, ImageEntry):
            lines.append(f"{pad}[image: {entry.url}]")
        elif isinstance(entry, MetadataEntry):
            if entry.key == "sets":
                lines.append(f"{pad}+{entry.value}")
            elif entry.key == "unsets":
                lines.append(f"{pad}-{entry.value}")
            else:
                lines.append(f"{pad}[{entry.key}: {entry.value}]")
        elif isinstance(entry, ConditionalEntry):
            lines.append(f"{pad}when {entry.condition}")
            lines.extend(serialize_schema(entry.then, depth + 1))
            if entry.else_ is not None:
                lines.append(f"{pad}else")
                lines.extend(serialize_schema(entry.else_, depth + 1))
    return lines


# ---------------------------------------------------------------------------
# Alias write-back
# ---------------------------------------------------------------------------

def _normalize(text: str) -> str:
    return " ".join(text.lower().split())


def is_redundant_alias(existing: str, new_alias: str) -> bool:
    """True if `new_alias` adds nothing over `existing`.

    Redundant when equal after normalisation, when one contains the other
    ("run" / "run away"), or when at least 80% of the words are shared.
    """
    old = _normalize(existing)
    new = _normalize(new_alias)
    if old == new or old in new or new in old:
        return True

    old_words = set(old.split(" "))
    new_words = new.split(" ")
    shared = [w for w in new_words if w in old_words]
    return len(shared) >= max(len(new_words), len(old_words)) * 0.8


def add_alias_to_option(lines: list[str], option_text: str, alias: str) -> list[str]:
    """Append `alias` to every option line whose text is `option_text`.

    Nested options are found too. Indentation, star markers and a trailing
    `& ?key` gate are kept as written.
    """
    alias = alias.strip()
    result: list[str] = []
    for line in lines:
        prefix = _PREFIX_RE.match(line).group(1)
        body = line[len(prefix):].rstrip()
        if not alias or not body.startswith("if "):
            result.append(line)
            continue

        option = parse_option_line(body[3:].strip())
        if option is None or option.text != option_text:
            result.append(line)
            continue

        existing = [option.text, *(option.aliases or [])]
        if any(is_redundant_alias(e, alias) for e in existing):
            result.append(line)
            continue

        m = REQUIRES_RE.search(body)
        gate = " " + body[m.start():] if m else ""
        aliases = [*(option.aliases or []), alias]
        result.append(f"{prefix}if {option.text} | {' | '.join(aliases)}{gate}")
    return result
