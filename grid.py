from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Sequence, Union


class Direction(Enum):
    N = (-1, 0)
    S = (1, 0)
    E = (0, 1)
    W = (0, -1)

    @property
    def delta(self) -> tuple[int, int]:
        return self.value

    @property
    def opposite(self) -> "Direction":
        return {
            Direction.N: Direction.S,
            Direction.S: Direction.N,
            Direction.E: Direction.W,
            Direction.W: Direction.E,
        }[self]


@dataclass(frozen=True)
class Position:
    row: int
    col: int

    def step(self, direction: Direction) -> "Position":
        dr, dc = direction.delta
        return Position(row=self.row + dr, col=self.col + dc)

    def is_adjacent(self, other: "Position") -> bool:
        return abs(self.row - other.row) + abs(self.col - other.col) == 1

    def to_dict(self) -> dict[str, int]:
        return {"row": self.row, "col": self.col}


class Cell(Enum):
    EMPTY = "empty"
    OBSTACLE = "obstacle"
    START = "start"
    END = "end"
    KEY = "key"
    EXIT = "exit"


Cells = Sequence[Sequence[Cell]]


@dataclass(frozen=True)
class PuzzleGrid:
    """A generated puzzle layout.

    For two-stage grids ``key`` is set and ``end`` is the exit door.
    ``optimal_path_length`` counts moves, not cells.
    """

    size: int
    cells: tuple[tuple[Cell, ...], ...]
    start: Position
    end: Position
    optimal_path_length: int
    key: Position | None = None
    obstacle_density: float = 0.0

    @property
    def is_two_stage(self) -> bool:
        return self.key is not None

    @property
    def exit(self) -> Position:
        return self.end

    def in_bounds(self, pos: Position) -> bool:
        return 0 <= pos.row < self.size and 0 <= pos.col < self.size

    def cell(self, pos: Position) -> Cell:
        if not self.in_bounds(pos):
            raise ValueError(f"Out of bounds position: {pos}")
        return self.cells[pos.row][pos.col]

    def is_obstacle(self, pos: Position) -> bool:
        return self.in_bounds(pos) and self.cells[pos.row][pos.col] is Cell.OBSTACLE

    def obstacles(self) -> list[Position]:
        return [
            Position(row=r, col=c)
            for r, row in enumerate(self.cells)
            for c, cell in enumerate(row)
            if cell is Cell.OBSTACLE
        ]

    def available_moves(self, pos: Position) -> set[Direction]:
        moves: set[Direction] = set()
        for direction in Direction:
            if self.next_pos(pos, direction) is not None:
                moves.add(direction)
        return moves

    def next_pos(self, pos: Position, direction: Direction) -> Position | None:
        if not self.in_bounds(pos):
            return None
        nxt = pos.step(direction)
        if not self.in_bounds(nxt) or self.is_obstacle(nxt):
            return None
        return nxt

    def to_rows(self) -> list[list[str]]:
        return [[cell.value for cell in row] for row in self.cells]


GridLike = Union[PuzzleGrid, Cells]


def _rows(grid: GridLike) -> Cells:
    return grid.cells if isinstance(grid, PuzzleGrid) else grid


def _passable(cells: Cells, pos: Position) -> bool:
    if pos.row < 0 or pos.row >= len(cells):
        return False
    row = cells[pos.row]
    if pos.col < 0 or pos.col >= len(row):
        return False
    return row[pos.col] is not Cell.OBSTACLE


def bfs_distances(grid: GridLike, source: Position, target: Position | None = None) -> dict[Position, int]:
    """Breadth-first move counts from ``source`` over 4-directional neighbours.

    Obstacles are impassable and the grid boundary is an implicit wall.
    Stops early once ``target`` is labelled. An obstacle or out-of-bounds
    source yields an empty mapping.
    """
    cells = _rows(grid)
    if not _passable(cells, source):
        return {}

    dist: dict[Position, int] = {source: 0}
    q: deque[Position] = deque([source])
    while q:
        cur = q.popleft()
        if cur == target:
            break
        for direction in Direction:
            nxt = cur.step(direction)
            if nxt in dist or not _passable(cells, nxt):
                continue
            dist[nxt] = dist[cur] + 1
            q.append(nxt)
    return dist


def shortest_path_length(grid: GridLike, a: Position, b: Position) -> int | None:
    """Number of moves on a shortest path from ``a`` to ``b``, or None if unreachable."""
    if not _passable(_rows(grid), b):
        return None
    return bfs_distances(grid, a, target=b).get(b)


def is_reachable(grid: GridLike, a: Position, b: Position) -> bool:
    return shortest_path_length(grid, a, b) is not None


def reachable_cells(grid: GridLike, source: Position) -> set[Position]:
    return set(bfs_distances(grid, source))


def is_solvable(grid: PuzzleGrid) -> bool:
    if grid.key is None:
        return is_reachable(grid, grid.start, grid.end)
    return is_reachable(grid, grid.start, grid.key) and is_reachable(grid, grid.key, grid.end)


def grid_from_rows(rows: Sequence[str]) -> PuzzleGrid:
    """Build a grid from text rows: ``S`` start, ``E`` end/exit, ``K`` key, ``#`` obstacle, ``.`` empty."""
    symbols = {".": Cell.EMPTY, "#": Cell.OBSTACLE, "S": Cell.START, "K": Cell.KEY}
    has_key = any("K" in row for row in rows)
    symbols["E"] = Cell.EXIT if has_key else Cell.END

    size = len(rows)
    if size == 0 or any(len(row) != size for row in rows):
        raise ValueError("rows must describe a non-empty square grid")

    found: dict[str, Position] = {}
    cells = []
    for r, row in enumerate(rows):
        line = []
        for c, ch in enumerate(row):
            if ch not in symbols:
                raise ValueError(f"Unknown cell symbol {ch!r} at {r},{c}")
            if ch in "SEK":
                found[ch] = Position(row=r, col=c)
            line.append(symbols[ch])
        cells.append(tuple(line))

    if "S" not in found or "E" not in found:
        raise ValueError("rows must contain a start (S) and an end (E)")

    frozen = tuple(cells)
    start, end, key = found["S"], found["E"], found.get("K")
    if key is None:
        optimal = shortest_path_length(frozen, start, end)
    else:
        to_key = shortest_path_length(frozen, start, key)
        to_exit = shortest_path_length(frozen, key, end)
        optimal = None if to_key is None or to_exit is None else to_key + to_exit

    obstacle_count = sum(row.count(Cell.OBSTACLE) for row in frozen)
    return PuzzleGrid(
        size=size,
        cells=frozen,
        start=start,
        end=end,
        key=key,
        optimal_path_length=optimal if optimal is not None else 0,
        obstacle_density=obstacle_count / (size * size),
    )
