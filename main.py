from __future__ import annotations

import argparse
import logging
import time
from typing import Iterable

from arithmetic import ExpressionGenerator
from db import open_repo
from difficulty import DEFAULT_TOTAL_QUESTIONS, GameVariant, get_difficulty_profile, performance_rating
from generator import GridGenerator
from grid import Cell, Position, PuzzleGrid
from session import (
    Command,
    GridSession,
    HiddenMazeSession,
    KeyMazeSession,
    OrderingSession,
    PathDrawSession,
    TimedSession,
)

logger = logging.getLogger(__name__)

SESSION_CLASSES: dict[GameVariant, type[GridSession]] = {
    GameVariant.PATH_FINDER: PathDrawSession,
    GameVariant.KEY_FINDER: KeyMazeSession,
    GameVariant.COGNITIVE_PATH_FINDER: HiddenMazeSession,
}

_LANDMARKS = {Cell.START: " S ", Cell.END: " E ", Cell.EXIT: " X ", Cell.KEY: " K "}


def _render_map(
    grid: PuzzleGrid,
    pos: Position,
    visited: Iterable[Position],
    reveal_all: bool = False,
    revealed: Iterable[Position] = (),
) -> str:
    """Text map of ``grid``. Without ``reveal_all`` only visited cells and revealed walls are shown."""
    visited = set(visited)
    revealed = set(revealed)
    lines = []
    for r in range(grid.size):
        row = []
        for c in range(grid.size):
            here = Position(r, c)
            cell = grid.cell(here)
            if here == pos:
                row.append(" @ ")
            elif cell is Cell.OBSTACLE:
                row.append("###" if reveal_all or here in revealed else " ? ")
            elif cell in _LANDMARKS:
                row.append(_LANDMARKS[cell])
            elif reveal_all or here in visited:
                row.append(" . ")
            else:
                row.append(" ? ")
        lines.append("".join(row))
    return "\n".join(lines)


def build_session(args: argparse.Namespace, repo=None, player_id: str | None = None) -> TimedSession:
    variant = GameVariant(args.variant)
    if variant is GameVariant.BUBBLE_SELECTION:
        return OrderingSession(
            total_questions=args.questions,
            generator=ExpressionGenerator(seed=args.seed),
            repo=repo,
            player_id=player_id,
            level_key=f"questions-{args.questions}",
        )

    if variant is GameVariant.PATH_FINDER:
        config = get_difficulty_profile(args.level, args.company or variant.value)
        level_key = f"level-{args.level}"
    else:
        config = get_difficulty_profile(args.difficulty, variant)
        level_key = args.difficulty

    generator = GridGenerator(seed=args.seed)

    def factory() -> PuzzleGrid:
        return generator.generate(config, variant)

    return SESSION_CLASSES[variant](
        grid=factory(),
        config=config,
        grid_factory=factory,
        repo=repo,
        player_id=player_id,
        level_key=level_key,
    )


def _print_state(session: TimedSession, seen: set[Position]) -> None:
    view = session.view()
    print(f"[{view.status}] {view.time_remaining:.0f}s left")
    if isinstance(session, OrderingSession):
        if view.question:
            q = view.question
            print(f"Question {q['question_number']}/{session.total_questions} ({q['difficulty_level']})")
            for idx, text in enumerate(q["bubbles"]):
                print(f"  {idx}: {text}")
        return

    print(
        _render_map(
            session.grid,
            session.head,
            visited=seen,
            reveal_all=not isinstance(session, HiddenMazeSession),
            revealed=getattr(session, "revealed", ()),
        )
    )
    print(f"moves: {view.move_count}  key: {'yes' if view.has_key else 'no'}")


def _print_summary(session: TimedSession) -> None:
    if session.result is None:
        print("No score recorded.")
        return
    print(f"Final score: {session.result.final_score}")
    if isinstance(session, OrderingSession) and session.questions:
        answered = len(session.questions)
        accuracy = session.correct_answers / answered * 100
        average = sum(q.time_taken_seconds for q in session.questions) / answered
        print(f"{session.correct_answers}/{answered} correct: {performance_rating(accuracy, average)}")
    if session.persist_error is not None:
        print("Warning: score could not be saved.")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Play a generated grid puzzle in the terminal.")
    parser.add_argument("--variant", choices=[v.value for v in GameVariant], default=GameVariant.PATH_FINDER.value)
    parser.add_argument("--level", type=int, default=1, help="path_finder level number")
    parser.add_argument("--company", default=None, help="company profile for the difficulty modifier")
    parser.add_argument("--difficulty", choices=["easy", "medium", "hard"], default="easy")
    parser.add_argument("--questions", type=int, default=DEFAULT_TOTAL_QUESTIONS)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--db", default=None, help="score store path (.db for SQLite, otherwise JSON)")
    parser.add_argument("--player", default="player")
    parser.add_argument("--log-level", default="WARNING")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    repo = open_repo(args.db) if args.db else None
    player_id = repo.get_or_create_player(args.player)["id"] if repo is not None else None

    try:
        session = build_session(args, repo, player_id)
    except (KeyError, ValueError) as exc:
        print(f"Cannot set up game: {exc}")
        return 2

    logger.info("starting %s session %s (%s)", session.variant.value, session.session_id, session.level_key)
    session.start()
    seen: set[Position] = set()
    if isinstance(session, GridSession):
        seen.add(session.head)
    _print_state(session, seen)

    last = time.monotonic()
    while not session.is_finished:
        try:
            line = input("> ")
        except EOFError:
            break
        now = time.monotonic()
        session.tick(session.handle, now - last)
        last = now
        if session.is_finished:
            print("Time is up.")
            break

        parts = line.split()
        if not parts:
            continue
        if parts[0].lower() in {"quit", "exit"}:
            break

        out = session.handle(Command(verb=parts[0], args=parts[1:]))
        for msg in out.messages:
            print(msg)
        if isinstance(session, GridSession):
            if parts[0].lower() == "reset":
                seen.clear()
            seen.add(session.head)
        if not session.is_finished:
            _print_state(session, seen)

    _print_summary(session)
    if repo is not None:
        repo.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
