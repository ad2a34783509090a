import pytest

from difficulty import DifficultyConfig, GameVariant
from grid import Position, grid_from_rows
from scoring import (
    PathEfficiencyStrategy,
    PenaltyStrategy,
    SessionTelemetry,
    penalty_breakdown,
    score_bubble_answer,
    score_path_efficiency,
    score_penalty,
    strategy_for,
)


def test_perfect_run_scores_1800():
    result = score_path_efficiency(
        completion_time=0,
        actual_path_length=6,
        optimal_path_length=6,
        time_limit=100,
        difficulty_modifier=1,
    )
    assert result.time_bonus == 500
    assert result.efficiency_bonus == 300
    assert result.final_score == 1800
    assert result.efficiency_percentage == 100.0


def test_no_time_bonus_at_the_limit():
    result = score_path_efficiency(100, 6, 6, 100)
    assert result.time_bonus == 0
    assert result.final_score == 1300


def test_overtime_never_goes_negative():
    result = score_path_efficiency(150, 6, 6, 100)
    assert result.time_bonus == 0


def test_inefficient_path_and_modifier():
    # half the remaining time, twice the optimal length, Capgemini modifier
    result = score_path_efficiency(60, 12, 6, 120, difficulty_modifier=1.2)
    assert result.time_bonus == 250
    assert result.efficiency_bonus == 150
    assert result.efficiency_percentage == 50.0
    assert result.final_score == int((1000 + 250 + 150) * 1.2)
    assert result.difficulty_multiplier == 1.2


def test_efficiency_is_capped_and_zero_length_is_tolerated():
    assert score_path_efficiency(0, 3, 6, 100).efficiency_percentage == 100.0
    assert score_path_efficiency(0, 0, 0, 100).final_score == 1500


def test_penalty_scores():
    assert score_penalty(0, 0) == 1000
    assert score_penalty(60, 10) == 830
    assert score_penalty(600, 100) == 0


def test_penalty_breakdown_reports_the_subtracted_amount():
    result = penalty_breakdown(60, 10, optimal_path_length=5)
    assert result.final_score == 830
    assert result.move_penalty == 170
    assert result.efficiency_percentage == 50.0
    assert result.to_dict()["final_score"] == 830


@pytest.mark.parametrize(
    "time_taken, level, expected",
    [
        (2, "easy", 150),
        (4, "easy", 130),
        (6, "medium", 172),
        (10, "hard", 210),
        (14, "hard", 200),
    ],
)
def test_bubble_answer_scores(time_taken, level, expected):
    assert score_bubble_answer(time_taken, 14, True, level).final_score == expected


def test_wrong_bubble_answer_scores_zero():
    result = score_bubble_answer(1, 14, False, "hard")
    assert result.final_score == 0
    assert result.time_bonus == 0


def test_strategies_are_selected_by_variant():
    assert isinstance(strategy_for("path_finder"), PathEfficiencyStrategy)
    assert isinstance(strategy_for(GameVariant.KEY_FINDER), PenaltyStrategy)
    assert isinstance(strategy_for("cognitive_path_finder"), PenaltyStrategy)
    with pytest.raises(KeyError):
        strategy_for("bubble_selection")
    with pytest.raises(KeyError):
        strategy_for("snake")


def test_strategy_scores_from_telemetry():
    grid = grid_from_rows([
        "S..",
        "...",
        "..E",
    ])
    config = DifficultyConfig(grid_size=3, obstacle_density=0.0, time_limit_seconds=100)
    telemetry = SessionTelemetry(
        path=[Position(0, 1), Position(0, 2), Position(1, 2), Position(2, 2)],
        move_count=4,
        completion_time_seconds=0,
    )
    assert strategy_for("path_finder").score(telemetry, grid, config).final_score == 1800
    assert strategy_for("key_finder").score(telemetry, grid, config).final_score == 980


def test_clear_progress_keeps_counters():
    telemetry = SessionTelemetry(path=[Position(0, 1)], move_count=1, has_key=True, restart_count=2)
    telemetry.clear_progress()
    assert telemetry.path == []
    assert telemetry.move_count == 0
    assert not telemetry.has_key
    assert telemetry.restart_count == 2
