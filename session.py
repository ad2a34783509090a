from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable
from uuid import uuid4

from arithmetic import Expression, ExpressionGenerator, is_ascending_selection, selection_order
from difficulty import DifficultyConfig, GameVariant, question_profile
from grid import Direction, Position, PuzzleGrid
from scoring import ScoreResult, SessionTelemetry, score_bubble_answer, strategy_for

logger = logging.getLogger(__name__)


class SessionStatus(str, Enum):
    IDLE = "idle"
    READY = "ready"
    PLAYING = "playing"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class TimerHandle:
    token: int


class CountdownTimer:
    """Remaining-time counter whose ticks are only honoured for the live handle.

    Every ``start`` issues a fresh handle and invalidates the previous one, so
    a tick scheduled for an earlier phase can never touch a later one.
    """

    def __init__(self, limit_seconds: float):
        self.limit_seconds = float(limit_seconds)
        self.remaining = float(limit_seconds)
        self._issued = 0
        self._live: TimerHandle | None = None

    @property
    def live_handle(self) -> TimerHandle | None:
        return self._live

    @property
    def elapsed(self) -> float:
        return self.limit_seconds - self.remaining

    def start(self) -> TimerHandle:
        self.cancel()
        self._issued += 1
        self._live = TimerHandle(self._issued)
        return self._live

    def cancel(self) -> None:
        self._live = None

    def reset(self, limit_seconds: float | None = None) -> None:
        self.cancel()
        if limit_seconds is not None:
            self.limit_seconds = float(limit_seconds)
        self.remaining = self.limit_seconds

    def is_live(self, handle: TimerHandle | None) -> bool:
        return handle is not None and handle == self._live

    def consume(self, seconds: float) -> bool:
        """Subtract ``seconds``; True once the countdown has reached zero."""
        self.remaining = max(0.0, self.remaining - seconds)
        return self.remaining <= 0


@dataclass(frozen=True)
class Command:
    """
    Normalized command object consumed by a session.
    """

    verb: str
    args: list[str] = field(default_factory=list)


@dataclass
class GameView:
    """
    UI-agnostic state projection returned by a session.
    """

    status: str
    time_remaining: float
    pos: dict[str, int] | None = None
    path: list[dict[str, int]] = field(default_factory=list)
    move_count: int = 0
    has_key: bool = False
    revealed_obstacles: list[dict[str, int]] = field(default_factory=list)
    question: dict[str, Any] | None = None
    score: dict[str, Any] | None = None
    is_complete: bool = False


@dataclass
class GameOutput:
    """
    Wrapper for state + user-facing messages from session commands.
    """

    view: GameView
    messages: list[str] = field(default_factory=list)
    did_persist: bool = False


_DIRECTION_ALIASES = {"NORTH": "N", "SOUTH": "S", "EAST": "E", "WEST": "W", "UP": "N", "DOWN": "S", "RIGHT": "E", "LEFT": "W"}


def _direction_from_token(token: str | None) -> Direction | None:
    if token is None:
        return None
    t = token.strip().upper()
    t = _DIRECTION_ALIASES.get(t, t)
    return Direction.__members__.get(t)


class TimedSession:
    """Lifecycle shared by every variant: idle -> ready -> playing <-> paused -> completed | failed."""

    variant: GameVariant

    def __init__(
        self,
        *,
        time_limit_seconds: float,
        repo: Any = None,
        player_id: str | None = None,
        session_id: str | None = None,
        level_key: str = "",
    ):
        self.repo = repo
        self.player_id = player_id
        self.session_id = session_id or str(uuid4())
        self.level_key = level_key
        self.timer = CountdownTimer(time_limit_seconds)
        self.status = SessionStatus.IDLE
        self.result: ScoreResult | None = None
        self.persist_error: Exception | None = None
        self.submissions = 0
        self._resolved = False
        self._timeout_in_progress = False

    @property
    def is_finished(self) -> bool:
        return self.status in (SessionStatus.COMPLETED, SessionStatus.FAILED)

    @property
    def handle(self) -> TimerHandle | None:
        return self.timer.live_handle

    def start(self) -> TimerHandle | None:
        if self.status is not SessionStatus.READY:
            return None
        self.status = SessionStatus.PLAYING
        return self.timer.start()

    def pause(self) -> bool:
        if self.status is not SessionStatus.PLAYING:
            return False
        self.timer.cancel()
        self.status = SessionStatus.PAUSED
        return True

    def resume(self) -> TimerHandle | None:
        if self.status is not SessionStatus.PAUSED:
            return None
        self.status = SessionStatus.PLAYING
        return self.timer.start()

    def tick(self, handle: TimerHandle | None, seconds: float = 1.0) -> bool:
        """Apply one tick from the host's tick source. Returns False for stale ticks."""
        if self.status is not SessionStatus.PLAYING or not self.timer.is_live(handle):
            return False
        if self.timer.consume(seconds):
            self._on_expired()
        return True

    def _on_expired(self) -> None:
        self.resolve_timeout()

    def resolve_timeout(self) -> bool:
        """Fail the attempt once; repeated or overlapping calls are ignored."""
        if self._resolved or self._timeout_in_progress:
            return False
        if self.status not in (SessionStatus.PLAYING, SessionStatus.PAUSED):
            return False
        self._timeout_in_progress = True
        try:
            self.timer.cancel()
            self.timer.remaining = 0.0
            self.status = SessionStatus.FAILED
            self._resolved = True
            self.result = self._timeout_result()
            logger.info("session %s timed out", self.session_id)
            self._submit(self.result, completed=False)
        finally:
            self._timeout_in_progress = False
        return True

    def _timeout_result(self) -> ScoreResult:
        return ScoreResult(
            base_score=0,
            time_bonus=0,
            efficiency_bonus=0,
            difficulty_multiplier=1.0,
            final_score=0,
            efficiency_percentage=0.0,
        )

    def _metrics(self, result: ScoreResult, completed: bool) -> dict[str, Any]:
        return {**result.to_dict(), "completed": completed}

    def _submit(self, result: ScoreResult, completed: bool) -> bool:
        if self.repo is None:
            return False
        self.submissions += 1
        try:
            self.repo.record_score(
                player_id=self.player_id,
                session_id=self.session_id,
                variant=self.variant.value,
                level_key=self.level_key,
                metrics=self._metrics(result, completed),
            )
        except Exception as exc:
            logger.warning("failed to record score for session %s: %s", self.session_id, exc)
            self.persist_error = exc
            return False
        return True

    def view(self) -> GameView:
        return GameView(
            status=self.status.value,
            time_remaining=self.timer.remaining,
            score=self.result.to_dict() if self.result else None,
            is_complete=self.status is SessionStatus.COMPLETED,
        )

    def handle_lifecycle(self, verb: str) -> GameOutput | None:
        if verb in {"look", "map"}:
            return GameOutput(view=self.view())
        if verb == "start":
            ok = self.start() is not None
            return GameOutput(view=self.view(), messages=[] if ok else ["Cannot start now."])
        if verb == "pause":
            ok = self.pause()
            return GameOutput(view=self.view(), messages=["Paused."] if ok else ["Not playing."])
        if verb == "resume":
            ok = self.resume() is not None
            return GameOutput(view=self.view(), messages=[] if ok else ["Not paused."])
        return None


class GridSession(TimedSession):
    """A timed attempt on one generated grid."""

    def __init__(
        self,
        *,
        grid: PuzzleGrid | None,
        config: DifficultyConfig,
        grid_factory: Callable[[], PuzzleGrid] | None = None,
        **kwargs: Any,
    ):
        super().__init__(time_limit_seconds=config.time_limit_seconds, **kwargs)
        self.config = config
        self.grid_factory = grid_factory
        self.grid: PuzzleGrid | None = None
        self.telemetry = SessionTelemetry()
        if grid is not None:
            self.load(grid)

    def load(self, grid: PuzzleGrid) -> None:
        self.grid = grid
        self.telemetry = SessionTelemetry()
        self.timer.reset(self.config.time_limit_seconds)
        self.result = None
        self.persist_error = None
        self._resolved = False
        self.status = SessionStatus.READY

    def reset(self) -> None:
        """Discard this attempt and regenerate; a new attempt gets a new session id."""
        self.timer.cancel()
        if self.grid_factory is None and self.grid is None:
            raise RuntimeError("no grid to reset to")
        grid = self.grid_factory() if self.grid_factory is not None else self.grid
        self.session_id = str(uuid4())
        self.load(grid)

    @property
    def head(self) -> Position:
        return self.telemetry.path[-1] if self.telemetry.path else self.grid.start

    def _complete(self) -> None:
        if self._resolved:
            return
        self.timer.cancel()
        self._resolved = True
        self.telemetry.completion_time_seconds = self.timer.elapsed
        self.status = SessionStatus.COMPLETED
        self.result = strategy_for(self.variant).score(self.telemetry, self.grid, self.config)
        logger.info(
            "session %s completed in %.1fs with score %d",
            self.session_id,
            self.telemetry.completion_time_seconds,
            self.result.final_score,
        )
        self._submit(self.result, completed=True)

    def _timeout_result(self) -> ScoreResult:
        self.telemetry.completion_time_seconds = self.timer.limit_seconds
        return super()._timeout_result()

    def _metrics(self, result: ScoreResult, completed: bool) -> dict[str, Any]:
        metrics = super()._metrics(result, completed)
        metrics.update(
            {
                "completion_time_seconds": self.telemetry.completion_time_seconds,
                "moves": self.telemetry.move_count,
                "path_length": self.telemetry.path_length,
                "optimal_path_length": self.grid.optimal_path_length,
                "restart_count": self.telemetry.restart_count,
            }
        )
        return metrics

    def view(self) -> GameView:
        view = super().view()
        view.pos = self.head.to_dict() if self.grid is not None else None
        view.path = [p.to_dict() for p in self.telemetry.path]
        view.move_count = self.telemetry.move_count
        view.has_key = self.telemetry.has_key
        return view

    def handle(self, command: Command) -> GameOutput:
        verb = (command.verb or "").strip().lower()
        args = command.args or []

        lifecycle = self.handle_lifecycle(verb)
        if lifecycle is not None:
            return lifecycle

        if verb == "reset":
            if self.grid is None and self.grid_factory is None:
                return GameOutput(view=self.view(), messages=["Nothing to reset."])
            self.reset()
            return GameOutput(view=self.view(), messages=["New puzzle generated."])

        if verb in {"n", "s", "e", "w"}:
            direction = _direction_from_token(verb)
        elif verb == "go":
            direction = _direction_from_token(args[0] if args else None)
        elif verb == "click" and len(args) == 2 and all(a.lstrip("-").isdigit() for a in args):
            return self._act(lambda: self.click(Position(int(args[0]), int(args[1]))))
        else:
            return GameOutput(view=self.view(), messages=["Unknown command."])

        if direction is None:
            return GameOutput(view=self.view(), messages=["Invalid direction."])
        return self._act(lambda: self.move(direction))

    def _act(self, action: Callable[[], str | None]) -> GameOutput:
        before = self.submissions
        before_error = self.persist_error
        message = action()
        persisted = self.submissions > before and self.persist_error is before_error
        return GameOutput(view=self.view(), messages=[message] if message else [], did_persist=persisted)

    def move(self, direction: Direction) -> str | None:
        raise NotImplementedError

    def click(self, pos: Position) -> str | None:
        if self.status is not SessionStatus.PLAYING:
            return "Not playing."
        if not self.head.is_adjacent(pos):
            return "Not adjacent."
        return self.move(Direction((pos.row - self.head.row, pos.col - self.head.col)))


class PathDrawSession(GridSession):
    """Path-drawing maze: extend a path cell by cell from start to end."""

    variant = GameVariant.PATH_FINDER

    def click(self, pos: Position) -> str | None:
        if self.status is not SessionStatus.PLAYING:
            return "Not playing."
        if not self.grid.in_bounds(pos) or self.grid.is_obstacle(pos):
            return "Blocked path."
        if not self.head.is_adjacent(pos):
            return "Not adjacent."

        path = self.telemetry.path
        if pos == self.grid.start:
            path.clear()
            return None
        if pos in path:
            # Backtrack to the clicked cell; it stays on the path as the new head.
            del path[path.index(pos) + 1:]
            return None

        path.append(pos)
        self.telemetry.move_count += 1
        if pos == self.grid.end:
            self._complete()
            return "Path complete."
        return None

    def move(self, direction: Direction) -> str | None:
        return self.click(self.head.step(direction))


class KeyMazeSession(GridSession):
    """Key-and-door maze: collect the key, then reach the exit.

    Walking into an obstacle sends the player back to start and drops the
    key; the timer keeps running and the layout is unchanged.
    """

    variant = GameVariant.KEY_FINDER

    def _collide(self, pos: Position) -> str:
        self.telemetry.clear_progress()
        self.telemetry.restart_count += 1
        self.telemetry.collision_count += 1
        return "Hit a wall. Back to start."

    def move(self, direction: Direction) -> str | None:
        if self.status is not SessionStatus.PLAYING:
            return "Not playing."
        target = self.head.step(direction)
        if not self.grid.in_bounds(target):
            return "Blocked path."
        if target == self.grid.exit and not self.telemetry.has_key:
            return "The door is locked."
        if self.grid.is_obstacle(target):
            return self._collide(target)

        self.telemetry.path.append(target)
        self.telemetry.move_count += 1
        if target == self.grid.key and not self.telemetry.has_key:
            self.telemetry.has_key = True
            return "Key collected."
        if target == self.grid.exit:
            self._complete()
            return "Escaped."
        return None


class HiddenMazeSession(KeyMazeSession):
    """Key-and-door maze whose walls stay hidden until the player runs into them."""

    variant = GameVariant.COGNITIVE_PATH_FINDER

    def __init__(self, **kwargs: Any):
        self.revealed: set[Position] = set()
        super().__init__(**kwargs)

    def load(self, grid: PuzzleGrid) -> None:
        super().load(grid)
        self.revealed = set()

    def _collide(self, pos: Position) -> str:
        self.revealed.add(pos)
        return super()._collide(pos)

    def view(self) -> GameView:
        view = super().view()
        view.revealed_obstacles = [p.to_dict() for p in sorted(self.revealed, key=lambda p: (p.row, p.col))]
        return view


@dataclass
class QuestionRecord:
    question_number: int
    expressions: list[Expression]
    answer: list[int]
    time_limit_seconds: float
    difficulty_level: str
    user_sequence: list[int] = field(default_factory=list)
    time_taken_seconds: float = 0.0
    is_correct: bool = False
    score: ScoreResult | None = None
    resolved: bool = False


class OrderingSession(TimedSession):
    """Timed arithmetic-ordering game: pick each round's bubbles from smallest to largest.

    Each question is its own timer phase; moving to the next question
    cancels the previous handle.
    """

    variant = GameVariant.BUBBLE_SELECTION

    def __init__(
        self,
        *,
        total_questions: int = 24,
        generator: ExpressionGenerator | None = None,
        **kwargs: Any,
    ):
        first = question_profile(1, total_questions)
        super().__init__(time_limit_seconds=first.time_limit_seconds, **kwargs)
        self.total_questions = total_questions
        self.generator = generator or ExpressionGenerator()
        self.questions: list[QuestionRecord] = []
        self.status = SessionStatus.READY

    @property
    def current(self) -> QuestionRecord | None:
        return self.questions[-1] if self.questions else None

    @property
    def total_score(self) -> int:
        return sum(q.score.final_score for q in self.questions if q.score is not None)

    @property
    def correct_answers(self) -> int:
        return sum(1 for q in self.questions if q.is_correct)

    def _next_question(self) -> TimerHandle | None:
        number = len(self.questions) + 1
        if number > self.total_questions:
            self._finish()
            return None
        profile = question_profile(number, self.total_questions)
        expressions = self.generator.generate_question_set(profile)
        self.questions.append(
            QuestionRecord(
                question_number=number,
                expressions=expressions,
                answer=selection_order(expressions),
                time_limit_seconds=profile.time_limit_seconds,
                difficulty_level=profile.difficulty_level.value,
            )
        )
        self.timer.reset(profile.time_limit_seconds)
        return self.timer.start()

    def start(self) -> TimerHandle | None:
        if self.status is not SessionStatus.READY:
            return None
        self.status = SessionStatus.PLAYING
        return self._next_question()

    def answer(self, sequence: list[int]) -> QuestionRecord | None:
        question = self.current
        if self.status is not SessionStatus.PLAYING or question is None or question.resolved:
            return None
        self._resolve_question(question, list(sequence), self.timer.elapsed)
        self._next_question()
        return question

    def _resolve_question(self, question: QuestionRecord, sequence: list[int], time_taken: float) -> None:
        self.timer.cancel()
        question.resolved = True
        question.user_sequence = sequence
        question.time_taken_seconds = time_taken
        question.is_correct = is_ascending_selection(question.expressions, sequence)
        question.score = score_bubble_answer(
            time_taken, question.time_limit_seconds, question.is_correct, question.difficulty_level
        )

    def _on_expired(self) -> None:
        self.resolve_timeout()

    def resolve_timeout(self) -> bool:
        """Time ran out on the current question: mark it wrong and move on."""
        question = self.current
        if self._timeout_in_progress or question is None or question.resolved:
            return False
        if self.status not in (SessionStatus.PLAYING, SessionStatus.PAUSED):
            return False
        # Each question phase starts with a full countdown, so only an expired one can time out.
        if self.timer.remaining > 0:
            return False
        self._timeout_in_progress = True
        try:
            self._resolve_question(question, [], question.time_limit_seconds)
            if self.status is SessionStatus.PAUSED:
                self.status = SessionStatus.PLAYING
            self._next_question()
        finally:
            self._timeout_in_progress = False
        return True

    def _finish(self) -> None:
        if self._resolved:
            return
        self._resolved = True
        self.timer.cancel()
        self.status = SessionStatus.COMPLETED
        answered = len(self.questions)
        accuracy = self.correct_answers / answered * 100 if answered else 0.0
        self.result = ScoreResult(
            base_score=sum(q.score.base_score for q in self.questions),
            time_bonus=sum(q.score.time_bonus for q in self.questions),
            efficiency_bonus=0,
            difficulty_multiplier=1.0,
            final_score=self.total_score,
            efficiency_percentage=accuracy,
        )
        logger.info("session %s finished with %d/%d correct", self.session_id, self.correct_answers, answered)
        self._submit(self.result, completed=True)

    def _metrics(self, result: ScoreResult, completed: bool) -> dict[str, Any]:
        metrics = super()._metrics(result, completed)
        streak = best = 0
        for q in self.questions:
            streak = streak + 1 if q.is_correct else 0
            best = max(best, streak)
        metrics.update(
            {
                "questions_answered": len(self.questions),
                "correct_answers": self.correct_answers,
                "best_streak": best,
                "total_time_seconds": sum(q.time_taken_seconds for q in self.questions),
            }
        )
        return metrics

    def view(self) -> GameView:
        view = super().view()
        question = self.current
        if question is not None and not question.resolved:
            view.question = {
                "question_number": question.question_number,
                "difficulty_level": question.difficulty_level,
                "bubbles": [e.text for e in question.expressions],
            }
        return view

    def handle(self, command: Command) -> GameOutput:
        verb = (command.verb or "").strip().lower()
        args = command.args or []

        lifecycle = self.handle_lifecycle(verb)
        if lifecycle is not None:
            return lifecycle

        if verb != "answer" or not args or not all(a.isdigit() for a in args):
            return GameOutput(view=self.view(), messages=["Unknown command."])

        before = self.submissions
        before_error = self.persist_error
        record = self.answer([int(a) for a in args])
        if record is None:
            return GameOutput(view=self.view(), messages=["Not playing."])
        message = "Correct." if record.is_correct else "Incorrect answer."
        persisted = self.submissions > before and self.persist_error is before_error
        return GameOutput(view=self.view(), messages=[message], did_persist=persisted)
