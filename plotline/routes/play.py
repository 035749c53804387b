"""Parse, step, options and match endpoints.

Every request carries the script and the caller's variable snapshot; the
server keeps no playthrough state. Responses return the updated snapshot.
"""

from fastapi import APIRouter, HTTPException, Request

from plotline.matcher import get_options_at_position, match_input
from plotline.parser import parse_into_schema
from plotline.scene_map import construct_scene_map, find_problems
from plotline.stepper import step
from plotline.variables import VariableStore

from .models import CoordinateBody, MatchBody, ScriptBody

router = APIRouter()


def _load(lines: list[str]):
    schema = parse_into_schema(lines)
    return schema, construct_scene_map(schema)


@router.post("/parse")
async def parse(body: ScriptBody):
    """Parse a script into its schema, scene map and authoring problems."""
    schema, scene_map = _load(body.lines)
    return {
        "schema": [entry.model_dump(by_alias=True, exclude_none=True) for entry in schema],
        "scene_map": scene_map,
        "problems": find_problems(schema, scene_map),
    }


@router.post("/step")
async def step_once(body: CoordinateBody):
    """Advance one observable step from the given coordinate."""
    schema, scene_map = _load(body.lines)
    variables = VariableStore(body.variables)
    result = step(schema, scene_map, body.scene_id, body.line_idx, variables.callbacks())
    return {"result": result.model_dump(), "variables": variables.snapshot()}


@router.post("/options")
async def options(body: CoordinateBody):
    """Options the player can pick at a coordinate."""
    schema, scene_map = _load(body.lines)
    if body.scene_id not in scene_map:
        raise HTTPException(404, f"Scene {body.scene_id} not found")
    variables = VariableStore(body.variables)
    found = get_options_at_position(schema, scene_map, body.scene_id, body.line_idx, variables.has)
    return {"options": [o.model_dump(exclude={"then"}, exclude_none=True) for o in found]}


@router.post("/match")
async def match(body: MatchBody, request: Request):
    """Resolve player input at a coordinate and apply the chosen option's counters."""
    if not body.input.strip():
        raise HTTPException(400, "Input must not be empty")
    schema, scene_map = _load(body.lines)
    variables = VariableStore(body.variables)
    config = request.app.state.config
    semantic = request.app.state.semantic_matcher if body.use_semantic else None

    result = await match_input(
        schema,
        scene_map,
        body.scene_id,
        body.line_idx,
        body.input,
        variables.has,
        semantic,
        min_confidence=float(config["min_confidence"]),
        min_keyword_score=int(config["min_keyword_score"]),
    )
    for entry in result.metadata:
        if entry.key == "sets":
            variables.increment(entry.value)
        else:
            variables.decrement(entry.value)
    return {"result": result.model_dump(exclude_none=True), "variables": variables.snapshot()}
