"""Which options the player can pick at a coordinate."""

from __future__ import annotations

from plotline.conditions import HasVariable
from plotline.models import START, OptionEntry, Schema
from plotline.scene_map import SceneMap, first_scene_index, get_scan_start, scene_exists
from plotline.stepper import build_scene_positions, resolve_implicit_start


def get_options_at_position(
    schema: Schema,
    scene_map: SceneMap,
    scene_id: str,
    line_idx: int,
    has: HasVariable,
) -> list[OptionEntry]:
    """Options of the wait gate at or after `line_idx`.

    A jump reached before any gate leaves nothing to pick. Past the last
    gate (implicit loop-back) every option in the scene is offered again.
    Options whose `requires` fails are left out.
    """
    if scene_id == START and not scene_exists(schema, scene_map, START):
        scene_id = resolve_implicit_start(schema) or START

    start = scene_map.get(scene_id)
    if start is None or start < 0:
        return []

    sequence = build_scene_positions(
        schema,
        get_scan_start(schema, start),
        has,
        first_scene_index(schema) or 0,
    )
    waits = [p for p in sequence.positions if p.kind == "wait"]

    for position in sequence.positions[max(line_idx, 0):]:
        if position.kind == "wait":
            return list(position.options)
        if position.kind == "jump":
            return []

    return [option for wait in waits for option in wait.options]
