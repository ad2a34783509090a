import logging
import random

import pytest

from difficulty import DifficultyConfig, GameVariant, level_profile, maze_profile
from generator import GridGenerator, generate_grid
from grid import Cell, Position, is_solvable, shortest_path_length


def _config(size, density, time_limit=120):
    return DifficultyConfig(grid_size=size, obstacle_density=density, time_limit_seconds=time_limit)


@pytest.mark.parametrize("level", [1, 2, 3, 4, 6])
def test_path_grids_are_always_solvable(level):
    config = level_profile(level).to_config()
    for seed in range(40):
        grid = GridGenerator(seed=seed).generate_path_grid(config)
        assert is_solvable(grid)
        assert grid.start == Position(0, 0)
        assert grid.end == Position(config.grid_size - 1, config.grid_size - 1)
        assert grid.cell(grid.start) is Cell.START
        assert grid.cell(grid.end) is Cell.END
        assert grid.optimal_path_length == shortest_path_length(grid, grid.start, grid.end)
        assert grid.obstacle_density <= config.obstacle_density


def test_reported_density_matches_placed_obstacles():
    config = _config(6, 0.25)
    grid = GridGenerator(seed=7).generate_path_grid(config)
    assert len(grid.obstacles()) <= int(36 * 0.25)
    assert grid.obstacle_density == len(grid.obstacles()) / 36


def test_dense_request_still_yields_a_solvable_grid():
    config = _config(5, 0.9)
    for seed in range(10):
        grid = GridGenerator(seed=seed).generate_path_grid(config)
        assert is_solvable(grid)
        assert grid.optimal_path_length >= 8


def test_zero_density_has_no_obstacles():
    grid = GridGenerator(seed=3).generate_path_grid(_config(5, 0.0))
    assert grid.obstacles() == []
    assert grid.optimal_path_length == 8


@pytest.mark.parametrize("difficulty", ["easy", "medium", "hard"])
def test_key_grids_are_solvable_in_both_legs(difficulty):
    config = maze_profile(GameVariant.KEY_FINDER, difficulty)
    for seed in range(40):
        grid = GridGenerator(seed=seed).generate(config, GameVariant.KEY_FINDER)
        assert grid.is_two_stage
        assert len({grid.start, grid.key, grid.exit}) == 3
        assert not grid.is_obstacle(grid.key)
        assert not grid.is_obstacle(grid.exit)
        assert grid.cell(grid.key) is Cell.KEY
        assert grid.cell(grid.exit) is Cell.EXIT
        assert is_solvable(grid)
        to_key = shortest_path_length(grid, grid.start, grid.key)
        to_exit = shortest_path_length(grid, grid.key, grid.exit)
        assert grid.optimal_path_length == to_key + to_exit


def test_cognitive_grids_start_in_the_centre():
    config = maze_profile(GameVariant.COGNITIVE_PATH_FINDER, "hard")
    grid = GridGenerator(seed=11).generate(config, GameVariant.COGNITIVE_PATH_FINDER)
    assert grid.start == Position(3, 3)
    assert grid.cell(grid.start) is Cell.START
    assert is_solvable(grid)


def test_same_seed_gives_identical_grids():
    config = level_profile(3).to_config()
    a = generate_grid(config, seed=99)
    b = generate_grid(config, seed=99)
    assert a == b
    c = GridGenerator(rng=random.Random(99)).generate(config)
    assert c == a


def test_injected_rng_is_the_only_source_of_randomness(rng):
    config = maze_profile(GameVariant.KEY_FINDER, "medium")
    state = rng.getstate()
    a = GridGenerator(rng=rng).generate(config, GameVariant.KEY_FINDER)
    rng.setstate(state)
    b = GridGenerator(rng=rng).generate(config, GameVariant.KEY_FINDER)
    assert a == b


def test_key_grid_falls_back_to_open_layout(caplog):
    caplog.set_level(logging.DEBUG, logger="generator")
    generator = GridGenerator(seed=5, max_pair_samples=0, max_regenerations=2)
    grid = generator.generate_key_grid(_config(5, 0.3))
    assert grid.obstacles() == []
    assert grid.obstacle_density == 0.0
    assert is_solvable(grid)
    assert "falling back" in caplog.text


def test_custom_endpoints_are_honoured():
    grid = GridGenerator(seed=1).generate_path_grid(_config(5, 0.2), start=Position(0, 4), end=Position(4, 0))
    assert grid.start == Position(0, 4)
    assert grid.end == Position(4, 0)
    assert is_solvable(grid)


@pytest.mark.parametrize(
    "config",
    [_config(1, 0.1), _config(4, 1.0), _config(4, -0.1)],
)
def test_invalid_configs_raise_value_error(config):
    with pytest.raises(ValueError):
        GridGenerator(seed=0).generate_path_grid(config)


def test_invalid_endpoints_raise_value_error():
    gen = GridGenerator(seed=0)
    with pytest.raises(ValueError):
        gen.generate_path_grid(_config(4, 0.1), start=Position(4, 0))
    with pytest.raises(ValueError):
        gen.generate_path_grid(_config(4, 0.1), start=Position(1, 1), end=Position(1, 1))
    with pytest.raises(ValueError):
        gen.generate_key_grid(_config(4, 0.1), start=Position(-1, 0))


def test_ordering_game_has_no_grid():
    with pytest.raises(KeyError):
        GridGenerator(seed=0).generate(_config(4, 0.1), GameVariant.BUBBLE_SELECTION)
