import dataclasses
import math

import pytest

from difficulty import (
    DifficultyConfig,
    DifficultyLevel,
    GameVariant,
    QuestionProfile,
    company_modifier,
    get_difficulty_profile,
    level_profile,
    maze_profile,
    performance_rating,
    question_profile,
    section_description,
)


@pytest.mark.parametrize(
    "level, expected",
    [
        (1, (4, 0.15, 120, 300)),
        (2, (5, 0.20, 180, 500)),
        (3, (6, 0.25, 240, 750)),
        (4, (7, 0.30, 300, 1000)),
        (5, (8, 0.35, 360, 1250)),
        (7, (10, 0.40, 480, 1750)),
    ],
)
def test_level_profiles(level, expected):
    p = level_profile(level)
    assert (p.grid_size, p.obstacle_density, p.time_limit_seconds, p.target_score) == expected
    assert p.level_number == level


def test_level_below_one_is_rejected():
    with pytest.raises(ValueError):
        level_profile(0)


def test_levels_never_get_easier():
    profiles = [level_profile(n) for n in range(1, 12)]
    for prev, cur in zip(profiles, profiles[1:]):
        assert cur.grid_size >= prev.grid_size
        assert cur.obstacle_density >= prev.obstacle_density
        assert cur.time_limit_seconds >= prev.time_limit_seconds


def test_company_modifiers():
    assert company_modifier("Accenture") == 1.00
    assert company_modifier("cognizant") == 1.10
    assert company_modifier(" CAPGEMINI ") == 1.20
    with pytest.raises(KeyError):
        company_modifier("initech")


def test_maze_profiles():
    cfg = maze_profile(GameVariant.KEY_FINDER, "hard")
    assert (cfg.grid_size, cfg.obstacle_density, cfg.time_limit_seconds) == (6, 0.26, 300)
    cfg = maze_profile("cognitive_path_finder", DifficultyLevel.EASY)
    assert (cfg.grid_size, cfg.obstacle_density) == (4, 0.15)
    with pytest.raises(KeyError):
        maze_profile(GameVariant.PATH_FINDER, "easy")
    with pytest.raises(ValueError):
        maze_profile(GameVariant.KEY_FINDER, "impossible")


def test_get_difficulty_profile_dispatch():
    level_cfg = get_difficulty_profile(2, GameVariant.PATH_FINDER)
    assert level_cfg == DifficultyConfig(5, 0.20, 180, 1.0)

    company_cfg = get_difficulty_profile(2, "cognizant")
    assert company_cfg.difficulty_modifier == 1.10
    assert company_cfg.grid_size == 5

    maze_cfg = get_difficulty_profile("medium", "key_finder")
    assert maze_cfg == maze_profile(GameVariant.KEY_FINDER, "medium")

    q = get_difficulty_profile(5, 24)
    assert isinstance(q, QuestionProfile)
    assert q == question_profile(5, 24)


def test_profiles_are_pure_and_frozen():
    assert get_difficulty_profile(3, "path_finder") == get_difficulty_profile(3, "path_finder")
    assert question_profile(17) == question_profile(17)
    cfg = get_difficulty_profile(1, "path_finder")
    with pytest.raises(dataclasses.FrozenInstanceError):
        cfg.grid_size = 99


def test_question_profiles_follow_the_thirds():
    first = question_profile(1)
    assert first.difficulty_level is DifficultyLevel.EASY
    assert first.operation_types == ("addition",)
    assert not first.allow_decimals
    assert question_profile(5).operation_types == ("addition", "subtraction")

    medium = question_profile(9)
    assert medium.difficulty_level is DifficultyLevel.MEDIUM
    assert not medium.allow_decimals
    assert question_profile(13).allow_decimals

    hard = question_profile(17)
    assert hard.difficulty_level is DifficultyLevel.HARD
    assert "mixed" in hard.operation_types
    assert not hard.include_square_root
    assert question_profile(20).include_square_root
    assert question_profile(24).include_square_root


@pytest.mark.parametrize("total", [24, 12, 9, 3])
def test_question_difficulty_is_non_decreasing(total):
    ranks = [question_profile(q, total).difficulty_level.rank for q in range(1, total + 1)]
    assert ranks == sorted(ranks)
    assert ranks[0] == 0
    assert ranks[-1] == 2


def test_question_shape_and_sections():
    for q in range(1, 25):
        p = question_profile(q)
        assert p.bubble_count == 3
        assert p.time_limit_seconds == 14
        assert p.section_number == math.ceil(q / 2)


def test_question_number_out_of_range():
    with pytest.raises(ValueError):
        question_profile(0)
    with pytest.raises(ValueError):
        question_profile(25, 24)


def test_section_descriptions_and_ratings():
    assert section_description(1).startswith("Warm-up")
    assert section_description(12).startswith("Advanced")
    assert performance_rating(95, 6) == "Exceptional"
    assert performance_rating(65, 13) == "Good"
    assert performance_rating(40, 5) == "Needs Practice"
