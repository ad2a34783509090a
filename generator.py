from __future__ import annotations

import logging
import random

from difficulty import DifficultyConfig, GameVariant
from grid import Cell, Position, PuzzleGrid, is_reachable, reachable_cells, shortest_path_length

logger = logging.getLogger(__name__)


def _empty_grid(size: int) -> list[list[Cell]]:
    return [[Cell.EMPTY for _ in range(size)] for _ in range(size)]


def _freeze(cells: list[list[Cell]]) -> tuple[tuple[Cell, ...], ...]:
    return tuple(tuple(row) for row in cells)


def _validate(config: DifficultyConfig, min_cells: int) -> None:
    if config.grid_size < 2 or config.grid_size * config.grid_size < min_cells:
        raise ValueError(f"grid_size too small: {config.grid_size}")
    if not 0.0 <= config.obstacle_density < 1.0:
        raise ValueError(f"obstacle_density must be in [0, 1), got {config.obstacle_density}")


class GridGenerator:
    """Seeded generator for solvable obstacle grids.

    Every loop is bounded: obstacle placement by ``attempts_per_obstacle``
    times the target count, key/exit sampling by ``max_pair_samples``, and
    whole-grid regeneration by ``max_regenerations`` before falling back to
    an obstacle-free layout.
    """

    def __init__(
        self,
        rng: random.Random | None = None,
        *,
        seed: int | None = None,
        attempts_per_obstacle: int = 10,
        max_pair_samples: int = 100,
        max_regenerations: int = 5,
        density_decrement: float = 0.1,
    ):
        self.rng = rng if rng is not None else random.Random(seed)
        self.attempts_per_obstacle = attempts_per_obstacle
        self.max_pair_samples = max_pair_samples
        self.max_regenerations = max_regenerations
        self.density_decrement = density_decrement

    def generate(self, config: DifficultyConfig, variant: GameVariant | str = GameVariant.PATH_FINDER) -> PuzzleGrid:
        variant = GameVariant(variant)
        if variant is GameVariant.PATH_FINDER:
            return self.generate_path_grid(config)
        if variant is GameVariant.KEY_FINDER:
            return self.generate_key_grid(config)
        if variant is GameVariant.COGNITIVE_PATH_FINDER:
            centre = config.grid_size // 2
            return self.generate_key_grid(config, start=Position(centre, centre))
        raise KeyError(f"Variant has no grid: {variant.value}")

    # Single-stage: start -> end
    def generate_path_grid(
        self,
        config: DifficultyConfig,
        start: Position | None = None,
        end: Position | None = None,
    ) -> PuzzleGrid:
        _validate(config, min_cells=2)
        size = config.grid_size
        start = start if start is not None else Position(0, 0)
        end = end if end is not None else Position(size - 1, size - 1)
        for pos in (start, end):
            if not (0 <= pos.row < size and 0 <= pos.col < size):
                raise ValueError(f"Endpoint out of bounds: {pos}")
        if start == end:
            raise ValueError("start and end must differ")

        cells = _empty_grid(size)
        reserved = {start, end}

        def still_solvable() -> bool:
            return is_reachable(cells, start, end)

        placed = self._place_obstacles(cells, config.obstacle_density, reserved, still_solvable)

        cells[start.row][start.col] = Cell.START
        cells[end.row][end.col] = Cell.END
        frozen = _freeze(cells)
        optimal = shortest_path_length(frozen, start, end)
        return PuzzleGrid(
            size=size,
            cells=frozen,
            start=start,
            end=end,
            optimal_path_length=optimal,
            obstacle_density=placed / (size * size),
        )

    # Two-stage: start -> key -> exit
    def generate_key_grid(self, config: DifficultyConfig, start: Position | None = None) -> PuzzleGrid:
        _validate(config, min_cells=3)
        size = config.grid_size
        start = start if start is not None else Position(0, 0)
        if not (0 <= start.row < size and 0 <= start.col < size):
            raise ValueError(f"Start out of bounds: {start}")

        density = config.obstacle_density
        for attempt in range(self.max_regenerations + 1):
            grid = self._try_key_grid(size, density, start)
            if grid is not None:
                return grid
            reduced = max(0.0, round(density - self.density_decrement, 4))
            logger.debug(
                "no valid key/exit pair at density %.2f (attempt %d), retrying at %.2f",
                density,
                attempt + 1,
                reduced,
            )
            density = reduced

        logger.debug("regeneration budget exhausted, falling back to an open grid")
        grid = self._try_key_grid(size, 0.0, start, exhaustive=True)
        if grid is None:
            raise RuntimeError("open grid has no key/exit placement")
        return grid

    def _try_key_grid(self, size: int, density: float, start: Position, exhaustive: bool = False) -> PuzzleGrid | None:
        cells = _empty_grid(size)
        total = size * size

        # Obstacles are only committed while every free cell stays connected to start.
        def still_connected() -> bool:
            free = sum(row.count(Cell.EMPTY) for row in cells)
            return len(reachable_cells(cells, start)) == free

        placed = self._place_obstacles(cells, density, {start}, still_connected, min_free=3)

        pair = self._sample_key_exit(cells, start, exhaustive)
        if pair is None:
            return None
        key, exit_pos = pair
        to_key = shortest_path_length(cells, start, key)
        to_exit = shortest_path_length(cells, key, exit_pos)

        cells[start.row][start.col] = Cell.START
        cells[key.row][key.col] = Cell.KEY
        cells[exit_pos.row][exit_pos.col] = Cell.EXIT
        return PuzzleGrid(
            size=size,
            cells=_freeze(cells),
            start=start,
            end=exit_pos,
            key=key,
            optimal_path_length=to_key + to_exit,
            obstacle_density=placed / total,
        )

    def _place_obstacles(self, cells, density, reserved, accept, min_free: int = 2) -> int:
        size = len(cells)
        target = int(size * size * density)
        budget = target * self.attempts_per_obstacle
        placed = 0
        attempts = 0
        while placed < target and attempts < budget:
            attempts += 1
            free = [
                Position(r, c)
                for r in range(size)
                for c in range(size)
                if cells[r][c] is Cell.EMPTY and Position(r, c) not in reserved
            ]
            if len(free) + len(reserved) <= min_free:
                break
            pos = self.rng.choice(free)
            cells[pos.row][pos.col] = Cell.OBSTACLE
            if accept():
                placed += 1
            else:
                cells[pos.row][pos.col] = Cell.EMPTY
        if placed < target:
            logger.debug("placed %d of %d obstacles after %d attempts", placed, target, attempts)
        return placed

    def _sample_key_exit(self, cells, start: Position, exhaustive: bool) -> tuple[Position, Position] | None:
        size = len(cells)
        free = [
            Position(r, c)
            for r in range(size)
            for c in range(size)
            if cells[r][c] is Cell.EMPTY and Position(r, c) != start
        ]
        if len(free) < 2:
            return None

        for _ in range(self.max_pair_samples):
            key = self.rng.choice(free)
            exit_pos = self.rng.choice(free)
            if key == exit_pos:
                continue
            if is_reachable(cells, start, key) and is_reachable(cells, key, exit_pos):
                return key, exit_pos

        if exhaustive:
            for key in free:
                for exit_pos in free:
                    if key != exit_pos and is_reachable(cells, start, key) and is_reachable(cells, key, exit_pos):
                        return key, exit_pos
        return None


def generate_grid(
    config: DifficultyConfig,
    variant: GameVariant | str = GameVariant.PATH_FINDER,
    *,
    rng: random.Random | None = None,
    seed: int | None = None,
) -> PuzzleGrid:
    return GridGenerator(rng=rng, seed=seed).generate(config, variant)
