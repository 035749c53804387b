"""Core domain models.

A script is parsed into a `Schema`: an ordered list of entries. Options and
conditionals own nested entry lists, so a program is always a tree; jumps
name their target scene by label and are resolved through the scene map,
never by reference.

Pydantic is used for validation and serialisation at every data boundary
(the HTTP surface returns these models as-is).
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

START = "START"
END = "END"


# ---------------------------------------------------------------------------
# Schema entries
# ---------------------------------------------------------------------------

class NarrativeEntry(BaseModel):
    """Plain text shown to the player."""

    type: Literal["narrative"] = "narrative"
    text: str


class SceneEntry(BaseModel):
    """`@LABEL` header. Labels are case-sensitive."""

    type: Literal["scene"] = "scene"
    label: str
    allows: str | None = None  # inline `[allows: ...]` generation hint


class JumpEntry(BaseModel):
    type: Literal["goto"] = "goto"
    target: str  # scene label or "END"


class OptionEntry(BaseModel):
    """A player choice. `then` runs when the option is picked."""

    type: Literal["option"] = "option"
    text: str
    aliases: list[str] | None = None
    requires: str | None = None  # "key" or "!key"
    then: list[SchemaEntry] = Field(default_factory=list)


class ImageEntry(BaseModel):
    type: Literal["image"] = "image"
    url: str


class MetadataEntry(BaseModel):
    """`[key: value]` side-channel entry; `+var` / `-var` become sets / unsets."""

    type: Literal["metadata"] = "metadata"
    key: str
    value: str


class ConditionalEntry(BaseModel):
    """`when <expr>` block with an optional `else` branch."""

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["conditional"] = "conditional"
    condition: str
    then: list[SchemaEntry] = Field(default_factory=list)
    else_: list[SchemaEntry] | None = Field(default=None, alias="else")


SchemaEntry = Annotated[
    Union[
        NarrativeEntry,
        SceneEntry,
        JumpEntry,
        OptionEntry,
        ImageEntry,
        MetadataEntry,
        ConditionalEntry,
    ],
    Field(discriminator="type"),
]
Schema = list[SchemaEntry]

OptionEntry.model_rebuild()
ConditionalEntry.model_rebuild()


# ---------------------------------------------------------------------------
# Engine results
# ---------------------------------------------------------------------------

Sender = Literal["narrator", "player", "system"]


class Line(BaseModel):
    """One line of playthrough output.

    Narrator lines produced by the stepper carry `id = "<scene>-<position>"`
    so the caller can resume from the next position.
    """

    id: str
    sender: Sender
    text: str
    type: Literal["text", "image"] = "text"


StepKind = Literal["continue", "wait", "end", "error"]
ErrorKind = Literal["loop-detected", "scene-not-found"]


class StepResult(BaseModel):
    kind: StepKind
    line: Line | None = None
    error: ErrorKind | None = None
    # Where a continue line sits or a wait happens, after jumps and
    # implicit-START resolution.
    scene_id: str | None = None
    line_idx: int | None = None
    # Preamble narratives that could not be merged into a text line
    # (the step produced an image, a wait or the end).
    prelude: list[str] = Field(default_factory=list)


class SemanticMatch(BaseModel):
    """Answer from the external semantic matcher."""

    matched: bool = False
    index: int | None = None
    confidence: float = 0.0
    normalized_input: str | None = None


MatchTier = Literal["exact", "keyword", "semantic"]
DisplayEntry = Annotated[Union[NarrativeEntry, ImageEntry], Field(discriminator="type")]


class MatchResult(BaseModel):
    """Outcome of resolving player input against the available options."""

    matched: bool
    scene_id: str | None = None
    line_idx: int | None = None
    option_text: str | None = None
    narratives: list[DisplayEntry] = Field(default_factory=list)
    metadata: list[MetadataEntry] = Field(default_factory=list)
    tier: MatchTier | None = None
    matched_alias: str | None = None
    confidence: float | None = None
    suggested_alias: str | None = None  # player phrasing worth saving as an alias
