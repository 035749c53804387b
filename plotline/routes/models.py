"""Pydantic request models for API endpoints."""

from pydantic import BaseModel, Field

from plotline.models import START


class ScriptBody(BaseModel):
    lines: list[str]


class CoordinateBody(BaseModel):
    lines: list[str]
    scene_id: str = START
    line_idx: int = Field(default=0, ge=0)
    variables: dict[str, int] = Field(default_factory=dict)


class MatchBody(CoordinateBody):
    input: str
    use_semantic: bool = True
