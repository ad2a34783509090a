from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from typing import Any

from difficulty import DifficultyConfig, DifficultyLevel, GameVariant
from grid import Position, PuzzleGrid

BASE_SCORE = 1000
TIME_BONUS_WEIGHT = 0.5
EFFICIENCY_BONUS_WEIGHT = 0.3
TIME_PENALTY_PER_SECOND = 2
MOVE_PENALTY = 5

BUBBLE_BASE_SCORE = 100
BUBBLE_MULTIPLIERS = {
    DifficultyLevel.EASY: 1.0,
    DifficultyLevel.MEDIUM: 1.5,
    DifficultyLevel.HARD: 2.0,
}


@dataclass
class SessionTelemetry:
    """Raw play data collected by a session; scored once the attempt ends."""

    path: list[Position] = field(default_factory=list)
    move_count: int = 0
    completion_time_seconds: float = 0.0
    has_key: bool = False
    restart_count: int = 0
    collision_count: int = 0

    @property
    def path_length(self) -> int:
        return len(self.path)

    def clear_progress(self) -> None:
        self.path.clear()
        self.move_count = 0
        self.has_key = False


@dataclass(frozen=True)
class ScoreResult:
    base_score: int
    time_bonus: int
    efficiency_bonus: int
    difficulty_multiplier: float
    final_score: int
    efficiency_percentage: float
    move_penalty: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def score_path_efficiency(
    completion_time: float,
    actual_path_length: int,
    optimal_path_length: int,
    time_limit: float,
    difficulty_modifier: float = 1.0,
) -> ScoreResult:
    actual = max(1, actual_path_length)
    remaining = max(0.0, (time_limit - completion_time) / time_limit) if time_limit > 0 else 0.0
    time_bonus = math.floor(BASE_SCORE * TIME_BONUS_WEIGHT * remaining)

    efficiency = min(100.0, (optimal_path_length / actual) * 100)
    efficiency_bonus = math.floor(BASE_SCORE * EFFICIENCY_BONUS_WEIGHT * (efficiency / 100))

    final_score = math.floor((BASE_SCORE + time_bonus + efficiency_bonus) * difficulty_modifier)
    return ScoreResult(
        base_score=BASE_SCORE,
        time_bonus=time_bonus,
        efficiency_bonus=efficiency_bonus,
        difficulty_multiplier=difficulty_modifier,
        final_score=final_score,
        efficiency_percentage=efficiency,
    )


def penalty_breakdown(completion_time: float, moves_count: int, optimal_path_length: int = 0) -> ScoreResult:
    penalty = completion_time * TIME_PENALTY_PER_SECOND + moves_count * MOVE_PENALTY
    final_score = max(0, math.floor(BASE_SCORE - penalty))
    if optimal_path_length > 0:
        efficiency = min(100.0, optimal_path_length / max(1, moves_count) * 100)
    else:
        efficiency = 0.0
    return ScoreResult(
        base_score=BASE_SCORE,
        time_bonus=0,
        efficiency_bonus=0,
        difficulty_multiplier=1.0,
        final_score=final_score,
        efficiency_percentage=efficiency,
        move_penalty=BASE_SCORE - final_score,
    )


def score_penalty(completion_time: float, moves_count: int) -> int:
    return penalty_breakdown(completion_time, moves_count).final_score


def score_bubble_answer(
    time_taken: float,
    time_limit: float,
    is_correct: bool,
    difficulty_level: DifficultyLevel | str,
) -> ScoreResult:
    if not is_correct:
        return ScoreResult(
            base_score=0,
            time_bonus=0,
            efficiency_bonus=0,
            difficulty_multiplier=1.0,
            final_score=0,
            efficiency_percentage=0.0,
        )

    if time_taken <= 3:
        time_bonus = 50
    elif time_taken <= 5:
        time_bonus = 30
    elif time_taken <= 7:
        time_bonus = 15
    elif time_taken < time_limit:
        time_bonus = 5
    else:
        time_bonus = 0

    multiplier = BUBBLE_MULTIPLIERS[DifficultyLevel(difficulty_level)]
    return ScoreResult(
        base_score=BUBBLE_BASE_SCORE,
        time_bonus=time_bonus,
        efficiency_bonus=0,
        difficulty_multiplier=multiplier,
        final_score=math.floor((BUBBLE_BASE_SCORE + time_bonus) * multiplier),
        efficiency_percentage=100.0,
    )


class ScoringStrategy:
    name = "base"

    def score(self, telemetry: SessionTelemetry, grid: PuzzleGrid | None, config: DifficultyConfig) -> ScoreResult:
        raise NotImplementedError


class PathEfficiencyStrategy(ScoringStrategy):
    name = "path_efficiency"

    def score(self, telemetry, grid, config):
        return score_path_efficiency(
            completion_time=telemetry.completion_time_seconds,
            actual_path_length=telemetry.path_length,
            optimal_path_length=grid.optimal_path_length,
            time_limit=config.time_limit_seconds,
            difficulty_modifier=config.difficulty_modifier,
        )


class PenaltyStrategy(ScoringStrategy):
    name = "penalty"

    def score(self, telemetry, grid, config):
        return penalty_breakdown(
            telemetry.completion_time_seconds,
            telemetry.move_count,
            optimal_path_length=grid.optimal_path_length if grid is not None else 0,
        )


# The ordering game scores per question through score_bubble_answer.
STRATEGIES: dict[GameVariant, ScoringStrategy] = {
    GameVariant.PATH_FINDER: PathEfficiencyStrategy(),
    GameVariant.KEY_FINDER: PenaltyStrategy(),
    GameVariant.COGNITIVE_PATH_FINDER: PenaltyStrategy(),
}


def strategy_for(variant: GameVariant | str) -> ScoringStrategy:
    try:
        return STRATEGIES[GameVariant(variant)]
    except ValueError:
        raise KeyError(f"Unknown game variant: {variant}") from None
    except KeyError:
        raise KeyError(f"No grid scoring strategy for variant: {variant}") from None
