"""One playthrough of a script.

The session wires the pure engine together: it parses the script, keeps the
coordinate and the visible history, owns a `VariableStore`, and turns
player input into the next run of lines.

    session = Session(lines)
    session.advance()                 # intro lines up to the first choice
    await session.submit("go north")  # match, apply, advance

Narrator lines produced by the stepper keep their `<scene>-<position>` ids;
player, system and prelude lines use ids that never parse as coordinates,
so the coordinate can always be recovered from the history alone.
"""

from __future__ import annotations

import itertools
import logging
from enum import Enum
from typing import Any

from plotline.config import get_config
from plotline.matcher import match_input
from plotline.matcher.semantic import SemanticMatcher
from plotline.models import START, Line, MatchResult
from plotline.parser import parse_into_schema
from plotline.scene_map import construct_scene_map
from plotline.script import add_alias_to_option
from plotline.stepper import parse_line_id, step
from plotline.variables import VariableStore

logger = logging.getLogger(__name__)

SILENT_INPUT = "(stay silent)"


class Status(str, Enum):
    RUNNING = "running"
    WAITING = "waiting"
    MATCHING = "matching"
    ENDED = "ended"
    ERROR = "error"


class SessionError(RuntimeError):
    """Raised when input is submitted while the session is not waiting."""


def get_scene_and_line_idx(history: list[Line]) -> tuple[str, int]:
    """Coordinate to resume from: after the last line with a coordinate id."""
    for line in reversed(history):
        parsed = parse_line_id(line.id)
        if parsed is not None:
            scene_id, idx = parsed
            return scene_id, idx + 1
    return START, 0


class Session:
    def __init__(
        self,
        script: list[str] | str,
        variables: VariableStore | None = None,
        semantic_matcher: SemanticMatcher | None = None,
        config: dict[str, Any] | None = None,
    ) -> None:
        self.config = config if config is not None else get_config()
        self.variables = variables if variables is not None else VariableStore()
        self.semantic_matcher = semantic_matcher
        self.history: list[Line] = []
        self.scene_id = START
        self.line_idx = 0
        self.status = Status.RUNNING
        self._ids = itertools.count()
        self.update_script(script)

    # -- script ---------------------------------------------------------

    def update_script(self, script: list[str] | str) -> None:
        """Re-parse the script. The coordinate and history are kept."""
        self.script = script.splitlines() if isinstance(script, str) else list(script)
        self.schema = parse_into_schema(self.script)
        self.scene_map = construct_scene_map(self.schema)

    # -- lines ----------------------------------------------------------

    def _emit(self, line: Line, out: list[Line]) -> None:
        self.history.append(line)
        out.append(line)

    def _line(self, sender: str, text: str, type: str = "text") -> Line:
        return Line(id=f"{sender}:{next(self._ids)}", sender=sender, text=text, type=type)

    # -- stepping -------------------------------------------------------

    def advance(self) -> list[Line]:
        """Step until the story waits, ends or fails. Returns the new lines."""
        out: list[Line] = []
        if self.status in (Status.ENDED, Status.ERROR):
            return out
        self.status = Status.RUNNING

        for _ in range(int(self.config.get("max_steps", 200))):
            result = step(
                self.schema,
                self.scene_map,
                self.scene_id,
                self.line_idx,
                self.variables.callbacks(),
            )
            for text in result.prelude:
                self._emit(self._line("narrator", text), out)

            if result.kind == "continue":
                self._emit(result.line, out)
                scene_id, idx = parse_line_id(result.line.id)
                self.scene_id, self.line_idx = scene_id, idx + 1
            elif result.kind == "wait":
                self.scene_id, self.line_idx = result.scene_id, result.line_idx
                self.status = Status.WAITING
                return out
            elif result.kind == "end":
                self.status = Status.ENDED
                return out
            else:
                self._emit(result.line, out)
                self.status = Status.ERROR
                return out

        logger.warning("advance stopped after %s steps at %s-%d", self.config.get("max_steps"), self.scene_id, self.line_idx)
        self._emit(self._line("system", "Stopped: too many lines without a choice"), out)
        self.status = Status.ERROR
        return out

    async def submit(self, text: str) -> MatchResult:
        """Resolve player input and play on from the chosen option.

        Unmatched input leaves the session waiting; the caller decides what
        to do with it (e.g. generate new content).
        """
        if self.status != Status.WAITING:
            raise SessionError(f"Session is {self.status.value}, not waiting for input")

        player_input = text.strip() or SILENT_INPUT
        out: list[Line] = []
        self._emit(self._line("player", player_input), out)

        self.status = Status.MATCHING
        result = await match_input(
            self.schema,
            self.scene_map,
            self.scene_id,
            self.line_idx,
            player_input,
            self.variables.has,
            self.semantic_matcher,
            min_confidence=float(self.config.get("min_confidence", 0.7)),
            min_keyword_score=int(self.config.get("min_keyword_score", 1)),
        )
        if not result.matched:
            logger.debug("no option matched %r at %s-%d", player_input, self.scene_id, self.line_idx)
            self.status = Status.WAITING
            return result

        for entry in result.metadata:
            if entry.key == "sets":
                self.variables.increment(entry.value)
            else:
                self.variables.decrement(entry.value)

        for entry in result.narratives:
            if entry.type == "image":
                self._emit(self._line("narrator", entry.url, type="image"), out)
            else:
                self._emit(self._line("narrator", entry.text), out)

        if result.tier == "semantic" and result.suggested_alias:
            self.update_script(add_alias_to_option(self.script, result.option_text, result.suggested_alias))
            note = f'Matched "{player_input}" to "{result.option_text}" ({result.confidence:.0%} confidence)'
            self._emit(self._line("system", note), out)

        self.scene_id, self.line_idx = result.scene_id, result.line_idx
        self.status = Status.RUNNING
        self.advance()
        return result

    # -- history --------------------------------------------------------

    def restart(self) -> list[Line]:
        self.variables.reset()
        self.history.clear()
        self.scene_id, self.line_idx = START, 0
        self.status = Status.RUNNING
        return self.advance()

    def jump_to(self, history_idx: int) -> list[Line]:
        """Rewind to just after `history[history_idx]` and play on.

        Variables are not rewound.
        """
        if not 0 <= history_idx < len(self.history):
            raise IndexError(f"history index {history_idx} out of range")
        del self.history[history_idx + 1:]
        self.scene_id, self.line_idx = get_scene_and_line_idx(self.history)
        self.status = Status.RUNNING
        return self.advance()

    def jump_back(self) -> list[Line]:
        """Undo the last player input."""
        for i in range(len(self.history) - 1, -1, -1):
            if self.history[i].sender == "player":
                if i == 0:
                    return self.restart()
                return self.jump_to(i - 1)
        return []
