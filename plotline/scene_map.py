"""Scene map: label → index of its `@LABEL` header in the schema.

Rules:
- The game starts at START. Without a real `@START` scene it points at
  index 0, the beginning of the script.
- END is -1 (end the game) unless a real `@END` scene exists, in which
  case its farewell content plays before the game ends.
- If several scenes share a label, only the first one is reachable.

START and END may be pure sentinels, so never assume a Scene entry exists
for them; use `scene_exists()`.
"""

from __future__ import annotations

import logging

from plotline.models import (
    END,
    START,
    ConditionalEntry,
    JumpEntry,
    OptionEntry,
    Schema,
    SceneEntry,
    SchemaEntry,
)

logger = logging.getLogger(__name__)

SceneMap = dict[str, int]


def construct_scene_map(schema: Schema) -> SceneMap:
    scene_map: SceneMap = {START: 0, END: -1}
    real: set[str] = set()

    for i, entry in enumerate(schema):
        if not isinstance(entry, SceneEntry):
            continue
        label = entry.label.strip()
        if label in real:
            continue
        scene_map[label] = i
        real.add(label)

    return scene_map


def scene_exists(schema: Schema, scene_map: SceneMap, label: str) -> bool:
    """True if `label` maps to an actual Scene entry, not just a sentinel."""
    idx = scene_map.get(label)
    if idx is None or idx < 0 or idx >= len(schema):
        return False
    entry = schema[idx]
    return isinstance(entry, SceneEntry) and entry.label.strip() == label


def get_scan_start(schema: Schema, scene_start: int) -> int:
    """Index of the first entry of a scene (skips its header)."""
    if scene_start < 0 or scene_start >= len(schema):
        return scene_start
    return scene_start + 1 if isinstance(schema[scene_start], SceneEntry) else scene_start


def first_scene_index(schema: Schema) -> int | None:
    for i, entry in enumerate(schema):
        if isinstance(entry, SceneEntry):
            return i
    return None


def _iter_jumps(entries: list[SchemaEntry]):
    for entry in entries:
        if isinstance(entry, JumpEntry):
            yield entry
        elif isinstance(entry, OptionEntry):
            yield from _iter_jumps(entry.then)
        elif isinstance(entry, ConditionalEntry):
            yield from _iter_jumps(entry.then)
            yield from _iter_jumps(entry.else_ or [])


def find_problems(schema: Schema, scene_map: SceneMap) -> list[str]:
    """Authoring problems worth flagging in an editor. Never raises."""
    problems: list[str] = []

    seen: set[str] = set()
    for entry in schema:
        if isinstance(entry, SceneEntry):
            label = entry.label.strip()
            if label in seen:
                problems.append(f"Duplicate scene @{label} is unreachable")
            seen.add(label)

    missing: set[str] = set()
    for jump in _iter_jumps(schema):
        target = jump.target.strip()
        if target == END or target in scene_map or target in missing:
            continue
        missing.add(target)
        problems.append(f"goto @{target} points at a scene that does not exist")

    return problems
