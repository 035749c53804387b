"""Tests for plotline.session — playthrough driver."""

from unittest.mock import AsyncMock

import pytest

from plotline.config import get_config
from plotline.models import Line, SemanticMatch
from plotline.session import Session, SessionError, Status, get_scene_and_line_idx

STORY = [
    "@HOME",
    "[image: https://example.com/fire.png]",
    "The fire burns brightly.",
    "if sit down | rest",
    "  You sit by the fire.",
    "  +rested",
    "if go outside",
    "  goto @OUTSIDE",
    "@OUTSIDE",
    "The night is cold.",
    "if go back inside",
    "  goto @HOME",
    "if leave forever",
    "  goto @END",
]


@pytest.fixture
def session() -> Session:
    s = Session(STORY)
    s.advance()
    return s


def _texts(lines):
    return [line.text for line in lines]


# ---------------------------------------------------------------------------
# advance
# ---------------------------------------------------------------------------

class TestAdvance:
    def test_plays_until_first_choice(self, session: Session) -> None:
        assert session.status == Status.WAITING
        assert [line.id for line in session.history] == ["HOME-0", "HOME-1"]
        assert session.history[0].type == "image"
        assert (session.scene_id, session.line_idx) == ("HOME", 2)

    def test_error_line_and_status(self) -> None:
        session = Session(["@A", "goto @B", "@B", "goto @A"])
        lines = session.advance()
        assert session.status == Status.ERROR
        assert lines[-1].id == "error-loop"

    def test_step_limit(self) -> None:
        config = get_config()
        config["max_steps"] = 2
        session = Session(["One.", "Two.", "Three."], config=config)
        lines = session.advance()
        assert _texts(lines[:2]) == ["One.", "Two."]
        assert lines[-1].sender == "system"
        assert session.status == Status.ERROR

    def test_update_script_keeps_coordinate(self, session: Session) -> None:
        session.update_script("\n".join(STORY).replace("brightly", "low"))
        assert (session.scene_id, session.line_idx) == ("HOME", 2)
        assert session.schema[2].text == "The fire burns low."

    def test_first_visit_lines_survive_the_counter(self) -> None:
        session = Session([
            "@HOME",
            "when !seen",
            "  You arrive for the first time.",
            "+seen",
            "The fire burns.",
            "The smoke rises.",
            "if leave",
            "  goto @END",
        ])
        lines = session.advance()
        assert _texts(lines) == ["You arrive for the first time.", "The fire burns.", "The smoke rises."]
        assert session.status == Status.WAITING


# ---------------------------------------------------------------------------
# submit
# ---------------------------------------------------------------------------

class TestSubmit:
    async def test_loop_back_option(self, session: Session) -> None:
        result = await session.submit("sit down")
        assert result.matched
        assert session.variables.get("rested") == 1
        assert session.status == Status.WAITING
        assert _texts(session.history[-2:]) == ["sit down", "You sit by the fire."]
        assert session.history[-2].sender == "player"

    async def test_jump_option(self, session: Session) -> None:
        await session.submit("go outside")
        assert session.history[-1].id == "OUTSIDE-0"
        assert (session.scene_id, session.line_idx) == ("OUTSIDE", 1)

    async def test_end(self, session: Session) -> None:
        await session.submit("go outside")
        await session.submit("leave forever")
        assert session.status == Status.ENDED
        with pytest.raises(SessionError):
            await session.submit("hello")

    async def test_unmatched_input_keeps_waiting(self, session: Session) -> None:
        result = await session.submit("xyzzy")
        assert not result.matched
        assert session.status == Status.WAITING
        assert session.history[-1].text == "xyzzy"

    async def test_empty_input_is_silence(self, session: Session) -> None:
        await session.submit("   ")
        assert session.history[-1].text == "(stay silent)"

    async def test_semantic_match_writes_alias_back(self) -> None:
        semantic = AsyncMock(return_value=SemanticMatch(matched=True, index=1, confidence=0.9))
        session = Session(STORY, semantic_matcher=semantic)
        session.advance()

        result = await session.submit("wander into the night")

        assert result.tier == "semantic"
        assert "if go outside | wander into the night" in session.script
        notes = [line.text for line in session.history if line.sender == "system"]
        assert notes == ['Matched "wander into the night" to "go outside" (90% confidence)']
        assert session.history[-1].id == "OUTSIDE-0"

        semantic.reset_mock()
        await session.submit("go back inside")
        again = await session.submit("wander into the night")
        assert again.tier == "exact"
        semantic.assert_not_awaited()


# ---------------------------------------------------------------------------
# history
# ---------------------------------------------------------------------------

class TestHistory:
    async def test_jump_back_undoes_last_input(self, session: Session) -> None:
        await session.submit("go outside")
        session.jump_back()
        assert [line.id for line in session.history] == ["HOME-0", "HOME-1"]
        assert (session.scene_id, session.line_idx) == ("HOME", 2)
        assert session.status == Status.WAITING

    async def test_restart_resets_variables(self, session: Session) -> None:
        await session.submit("sit down")
        session.restart()
        assert session.variables.snapshot() == {}
        assert [line.id for line in session.history] == ["HOME-0", "HOME-1"]

    def test_jump_to_out_of_range(self, session: Session) -> None:
        with pytest.raises(IndexError):
            session.jump_to(10)


def test_get_scene_and_line_idx():
    history = [
        Line(id="HOME-3", sender="narrator", text="a"),
        Line(id="player:0", sender="player", text="b"),
        Line(id="system:1", sender="system", text="c"),
    ]
    assert get_scene_and_line_idx(history) == ("HOME", 4)
    assert get_scene_and_line_idx([]) == ("START", 0)
