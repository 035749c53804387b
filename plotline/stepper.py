"""Execution engine: advance a playthrough by one observable step.

A coordinate is `(scene_id, position)`. Positions are not schema indices;
they count the scene's *semantic* positions, rebuilt on every call from
the current variable state:

    @HOME
    +visits                 0: sets visits (applied, never shown)
    The fire burns.         1: narrative
    if sit down             \
    if leave                 2: wait (both options pending)
    when visits >= 3
      The fire is dying.    3: narrative, or skip while the condition fails
      goto @GARDEN          4: jump, or skip
    else
      Embers glow.          5: skip, or narrative

Whichever branch holds, the layout is the same, so a `+var` that flips a
condition earlier in the scene never moves the positions after it.

`step()` returns one of:

    continue  a line to show; call again from `parse_line_id(line.id) + 1`
    wait      options are pending at `(result.scene_id, result.line_idx)`;
              resolve player input there first
    end       the story is over
    error     loop-detected or scene-not-found, with a visible system line

Entering a scene at position 0 first evaluates the global preamble: the
`when` blocks and jumps written before the first scene header. Their
narratives are prepended to the first line; a jump inside them overrides
the entry. A bare top-level `goto` in the preamble is the entry point for
an implicit START.

The engine owns no state. Variables are read and mutated only through the
injected callbacks, so identical inputs give identical outputs.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Literal

from plotline.conditions import HasVariable, check_condition
from plotline.models import (
    END,
    START,
    ConditionalEntry,
    ImageEntry,
    JumpEntry,
    Line,
    MetadataEntry,
    NarrativeEntry,
    OptionEntry,
    Schema,
    SceneEntry,
    SchemaEntry,
    StepResult,
)
from plotline.scene_map import SceneMap, first_scene_index, get_scan_start, scene_exists
from plotline.variables import VariableCallbacks

logger = logging.getLogger(__name__)

_LINE_ID_RE = re.compile(r"^(.+)-(\d+)$")


# ---------------------------------------------------------------------------
# Line ids
# ---------------------------------------------------------------------------

def make_line_id(scene_id: str, position: int) -> str:
    return f"{scene_id}-{position}"


def parse_line_id(line_id: str) -> tuple[str, int] | None:
    """Split `"<scene>-<position>"`; None for ids without a coordinate."""
    m = _LINE_ID_RE.match(line_id)
    if not m:
        return None
    return m.group(1), int(m.group(2))


# ---------------------------------------------------------------------------
# Scene positions
# ---------------------------------------------------------------------------

PositionKind = Literal["narrative", "image", "wait", "sets", "unsets", "jump", "skip"]


@dataclass
class ScenePosition:
    kind: PositionKind
    text: str = ""  # narrative text, image url, variable name or jump target
    options: list[OptionEntry] = field(default_factory=list)  # available options at a wait


@dataclass
class SceneSequence:
    positions: list[ScenePosition]

    @property
    def jump(self) -> str | None:
        """Target of the first jump reached in the current state, if any."""
        for position in self.positions:
            if position.kind == "jump":
                return position.text
        return None


def option_available(option: OptionEntry, has: HasVariable) -> bool:
    """An option without `requires` is always available; `!key` negates."""
    if not option.requires:
        return True
    return check_condition(option.requires, has)


def build_scene_positions(
    schema: Schema,
    scan_start: int,
    has: HasVariable,
    preamble_end: int = 0,
) -> SceneSequence:
    """Flatten the scene starting at `scan_start` into positions.

    Both branches of every conditional are walked. The branch that does
    not hold leaves `skip` positions behind, so the number of positions is
    the same whatever the variables are and a counter change never shifts
    a coordinate. A run of sibling options takes one position; it is the
    wait when it opens a new gate and a skip when it joins an open one.

    Entries before `preamble_end` that are conditionals or jumps belong to
    the global preamble and are skipped.
    """
    positions: list[ScenePosition] = []
    gate: ScenePosition | None = None

    def walk(entries: list[SchemaEntry], live: bool) -> None:
        nonlocal gate
        in_run = False
        for entry in entries:
            if isinstance(entry, OptionEntry):
                if not in_run:
                    if live and gate is None:
                        gate = ScenePosition(kind="wait")
                        positions.append(gate)
                    else:
                        positions.append(ScenePosition(kind="skip"))
                in_run = True
                if live and gate is not None and option_available(entry, has):
                    gate.options.append(entry)
                continue
            in_run = False

            if isinstance(entry, NarrativeEntry):
                shown = ScenePosition(kind="narrative", text=entry.text)
            elif isinstance(entry, ImageEntry):
                shown = ScenePosition(kind="image", text=entry.url)
            elif isinstance(entry, MetadataEntry) and entry.key in ("sets", "unsets"):
                shown = ScenePosition(kind=entry.key, text=entry.value)
            elif isinstance(entry, JumpEntry):
                shown = ScenePosition(kind="jump", text=entry.target.strip())
            elif isinstance(entry, ConditionalEntry):
                holds = live and check_condition(entry.condition, has)
                walk(entry.then, holds)
                walk(entry.else_ or [], live and not holds)
                continue
            else:
                # Other metadata, and headers nested in a block, hold no position.
                continue

            if live:
                gate = None
                positions.append(shown)
            else:
                positions.append(ScenePosition(kind="skip"))
            if isinstance(entry, JumpEntry):
                # Nothing after a jump in the same block is reachable.
                break

    body: list[SchemaEntry] = []
    for i in range(max(scan_start, 0), len(schema)):
        entry = schema[i]
        if isinstance(entry, SceneEntry):
            break
        if i < preamble_end and isinstance(entry, (ConditionalEntry, JumpEntry)):
            continue
        body.append(entry)
    walk(body, True)

    return SceneSequence(positions=positions)


# ---------------------------------------------------------------------------
# Global preamble
# ---------------------------------------------------------------------------

@dataclass
class PreambleOutcome:
    narratives: list[str] = field(default_factory=list)
    target: str | None = None


def evaluate_preamble(schema: Schema, variables: VariableCallbacks) -> PreambleOutcome:
    """Run the `when` blocks written before the first scene header."""
    outcome = PreambleOutcome()
    end = first_scene_index(schema)
    if not end:
        return outcome

    def walk(entries: list[SchemaEntry]) -> str | None:
        for entry in entries:
            if isinstance(entry, NarrativeEntry):
                outcome.narratives.append(entry.text)
            elif isinstance(entry, ConditionalEntry):
                branch = entry.then if check_condition(entry.condition, variables.has) else (entry.else_ or [])
                target = walk(branch)
                if target is not None:
                    return target
            elif isinstance(entry, JumpEntry):
                return entry.target.strip()
            elif isinstance(entry, MetadataEntry):
                if entry.key == "sets":
                    variables.increment(entry.value)
                elif entry.key == "unsets":
                    variables.decrement(entry.value)
        return None

    for entry in schema[:end]:
        if isinstance(entry, ConditionalEntry):
            target = walk([entry])
            if target is not None:
                outcome.target = target
                break
    return outcome


def find_entry_point(schema: Schema) -> str | None:
    """Target of the first bare `goto` before the first scene header."""
    end = first_scene_index(schema)
    if not end:
        return None
    for entry in schema[:end]:
        if isinstance(entry, JumpEntry):
            return entry.target.strip()
    return None


def resolve_implicit_start(schema: Schema) -> str | None:
    """Where an implicit START really begins, or None to play from index 0.

    The preamble entry point wins. Otherwise, with nothing to show before
    the first scene header, START is the first scene.
    """
    entry_point = find_entry_point(schema)
    if entry_point is not None:
        return entry_point
    end = first_scene_index(schema)
    if end is None:
        return None
    for entry in schema[:end]:
        if isinstance(entry, (NarrativeEntry, ImageEntry, OptionEntry)):
            return None
        if isinstance(entry, MetadataEntry) and entry.key in ("sets", "unsets"):
            return None
    label = schema[end].label.strip()
    return label if label != START else None


# ---------------------------------------------------------------------------
# step
# ---------------------------------------------------------------------------

def _error(kind: str, short: str, message: str) -> StepResult:
    return StepResult(
        kind="error",
        error=kind,
        line=Line(id=f"error-{short}", sender="system", text=message),
    )


def step(
    schema: Schema,
    scene_map: SceneMap,
    scene_id: str,
    line_idx: int,
    variables: VariableCallbacks,
) -> StepResult:
    """Advance one observable unit from `(scene_id, line_idx)`.

    The global preamble runs at most once per call, on the first scene
    entered at position 0. A negative `line_idx` is read as 0.
    """
    scene, idx = scene_id, max(line_idx, 0)
    visited: set[tuple[str, int]] = set()
    entered: set[str] = set()
    prelude: list[str] = []
    preamble_pending = True
    preamble_end = first_scene_index(schema) or 0

    while True:
        if (scene, idx) in visited or (idx == 0 and scene in entered):
            logger.warning("loop detected at %s", make_line_id(scene, idx))
            return _error("loop-detected", "loop", f"Infinite loop detected: {make_line_id(scene, idx)}")
        visited.add((scene, idx))
        if idx == 0:
            entered.add(scene)

        if scene == END and not scene_exists(schema, scene_map, END):
            return StepResult(kind="end", prelude=prelude)
        if scene not in scene_map:
            logger.warning("scene %r not found", scene)
            return _error("scene-not-found", "scene", f"Scene {scene} not found")

        if idx == 0 and preamble_pending:
            preamble_pending = False
            outcome = evaluate_preamble(schema, variables)
            prelude.extend(outcome.narratives)
            if outcome.target is not None and outcome.target != scene:
                logger.debug("preamble jump %s -> %s", scene, outcome.target)
                scene, idx = outcome.target, 0
                continue

        if scene == START and not scene_exists(schema, scene_map, START):
            start = resolve_implicit_start(schema)
            if start is not None:
                scene = start
                continue

        scan_start = get_scan_start(schema, scene_map[scene])
        sequence = build_scene_positions(schema, scan_start, variables.has, preamble_end)

        if idx >= len(sequence.positions):
            if scene == END:
                return StepResult(kind="end", prelude=prelude)
            # Out of content with no jump: wait at the scene's decision point.
            return StepResult(kind="wait", scene_id=scene, line_idx=idx, prelude=prelude)

        pos = sequence.positions[idx]
        if pos.kind == "skip":
            idx += 1
            continue
        if pos.kind == "sets":
            variables.increment(pos.text)
            idx += 1
            continue
        if pos.kind == "unsets":
            variables.decrement(pos.text)
            idx += 1
            continue
        if pos.kind == "wait":
            return StepResult(kind="wait", scene_id=scene, line_idx=idx, prelude=prelude)
        if pos.kind == "jump":
            if pos.text == END:
                if scene != END and scene_exists(schema, scene_map, END):
                    scene, idx = END, 0
                    continue
                return StepResult(kind="end", prelude=prelude)
            logger.debug("jump %s -> %s", scene, pos.text)
            scene, idx = pos.text, 0
            continue

        line_id = make_line_id(scene, idx)
        if pos.kind == "image":
            line = Line(id=line_id, sender="narrator", text=pos.text, type="image")
            return StepResult(kind="continue", line=line, scene_id=scene, line_idx=idx, prelude=prelude)
        text = "\n".join([*prelude, pos.text])
        line = Line(id=line_id, sender="narrator", text=text)
        return StepResult(kind="continue", line=line, scene_id=scene, line_idx=idx)
