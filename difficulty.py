from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Union


class GameVariant(str, Enum):
    PATH_FINDER = "path_finder"
    KEY_FINDER = "key_finder"
    COGNITIVE_PATH_FINDER = "cognitive_path_finder"
    BUBBLE_SELECTION = "bubble_selection"


class DifficultyLevel(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

    @property
    def rank(self) -> int:
        return _LEVEL_RANK[self]


_LEVEL_RANK = {DifficultyLevel.EASY: 0, DifficultyLevel.MEDIUM: 1, DifficultyLevel.HARD: 2}


@dataclass(frozen=True)
class DifficultyConfig:
    grid_size: int
    obstacle_density: float
    time_limit_seconds: int
    difficulty_modifier: float = 1.0


@dataclass(frozen=True)
class LevelProfile:
    level_number: int
    grid_size: int
    obstacle_density: float
    time_limit_seconds: int
    target_score: int

    def to_config(self, difficulty_modifier: float = 1.0) -> DifficultyConfig:
        return DifficultyConfig(
            grid_size=self.grid_size,
            obstacle_density=self.obstacle_density,
            time_limit_seconds=self.time_limit_seconds,
            difficulty_modifier=difficulty_modifier,
        )


@dataclass(frozen=True)
class QuestionProfile:
    question_number: int
    section_number: int
    difficulty_level: DifficultyLevel
    allow_decimals: bool
    operation_types: tuple[str, ...]
    value_range: tuple[int, int]
    include_square_root: bool = False
    bubble_count: int = 3
    time_limit_seconds: int = 14


# Path-drawing maze levels: (grid_size, obstacle_density, time_limit_seconds, target_score)
LEVEL_TABLE: dict[int, tuple[int, float, int, int]] = {
    1: (4, 0.15, 120, 300),
    2: (5, 0.20, 180, 500),
    3: (6, 0.25, 240, 750),
    4: (7, 0.30, 300, 1000),
}
MAX_LEVEL_DENSITY = 0.40

COMPANY_MODIFIERS: dict[str, float] = {
    "accenture": 1.00,
    "cognizant": 1.10,
    "capgemini": 1.20,
}

# Key/door mazes: difficulty -> (grid_size, obstacle_density)
MAZE_TABLES: dict[GameVariant, dict[DifficultyLevel, tuple[int, float]]] = {
    GameVariant.KEY_FINDER: {
        DifficultyLevel.EASY: (4, 0.18),
        DifficultyLevel.MEDIUM: (5, 0.22),
        DifficultyLevel.HARD: (6, 0.26),
    },
    GameVariant.COGNITIVE_PATH_FINDER: {
        DifficultyLevel.EASY: (4, 0.15),
        DifficultyLevel.MEDIUM: (5, 0.20),
        DifficultyLevel.HARD: (6, 0.25),
    },
}
MAZE_TIME_LIMIT_SECONDS = 300

BUBBLE_COUNT = 3
QUESTION_TIME_LIMIT_SECONDS = 14
DEFAULT_TOTAL_QUESTIONS = 24


def level_profile(level_number: int) -> LevelProfile:
    if level_number < 1:
        raise ValueError(f"level_number must be >= 1, got {level_number}")

    if level_number in LEVEL_TABLE:
        grid_size, density, time_limit, target = LEVEL_TABLE[level_number]
    else:
        last = max(LEVEL_TABLE)
        grid_size, density, time_limit, target = LEVEL_TABLE[last]
        extra = level_number - last
        grid_size += extra
        density = min(MAX_LEVEL_DENSITY, density + 0.05 * extra)
        time_limit += 60 * extra
        target += 250 * extra

    return LevelProfile(
        level_number=level_number,
        grid_size=grid_size,
        obstacle_density=round(density, 2),
        time_limit_seconds=time_limit,
        target_score=target,
    )


def company_modifier(company: str) -> float:
    key = company.strip().lower()
    if key not in COMPANY_MODIFIERS:
        raise KeyError(f"Unknown company: {company}")
    return COMPANY_MODIFIERS[key]


def maze_profile(variant: GameVariant | str, difficulty: DifficultyLevel | str) -> DifficultyConfig:
    variant = GameVariant(variant)
    difficulty = DifficultyLevel(difficulty)
    if variant not in MAZE_TABLES:
        raise KeyError(f"No maze table for variant: {variant.value}")
    grid_size, density = MAZE_TABLES[variant][difficulty]
    return DifficultyConfig(
        grid_size=grid_size,
        obstacle_density=density,
        time_limit_seconds=MAZE_TIME_LIMIT_SECONDS,
        difficulty_modifier=1.0,
    )


def question_profile(question_number: int, total_questions: int = DEFAULT_TOTAL_QUESTIONS) -> QuestionProfile:
    """Profile for one question of the arithmetic-ordering game.

    The sequence is split into thirds of increasing arithmetic complexity.
    Depends only on the question index, never on earlier answers.
    """
    if total_questions < 1:
        raise ValueError(f"total_questions must be >= 1, got {total_questions}")
    if not 1 <= question_number <= total_questions:
        raise ValueError(f"question_number must be in 1..{total_questions}, got {question_number}")

    band = min(3, -(-question_number * 3 // total_questions))
    band_start = (band - 1) * total_questions // 3 + 1
    band_end = band * total_questions // 3
    band_len = max(1, band_end - band_start + 1)
    # 0.0 at the first question of the band, approaching 1.0 at the last
    progress = (question_number - band_start) / band_len

    include_square_root = False
    if band == 1:
        level = DifficultyLevel.EASY
        allow_decimals = False
        ops: tuple[str, ...] = ("addition",) if progress < 0.5 else ("addition", "subtraction")
        value_range = (1, 15)
    elif band == 2:
        level = DifficultyLevel.MEDIUM
        allow_decimals = progress >= 0.5
        if progress < 0.5:
            ops = ("addition", "subtraction", "multiplication")
        else:
            ops = ("multiplication", "division", "addition", "subtraction")
        value_range = (2, 20)
    else:
        level = DifficultyLevel.HARD
        allow_decimals = True
        ops = ("multiplication", "division", "mixed")
        value_range = (2, 25)
        include_square_root = progress >= 0.375

    return QuestionProfile(
        question_number=question_number,
        section_number=math.ceil(question_number / 2),
        difficulty_level=level,
        allow_decimals=allow_decimals,
        operation_types=ops,
        value_range=value_range,
        include_square_root=include_square_root,
        bubble_count=BUBBLE_COUNT,
        time_limit_seconds=QUESTION_TIME_LIMIT_SECONDS,
    )


def section_description(section_number: int) -> str:
    if section_number <= 4:
        return "Warm-up: Basic addition and subtraction"
    if section_number <= 8:
        return "Building: Multiplication enters the game"
    if section_number <= 10:
        return "Challenge: Division and decimals"
    if section_number <= 12:
        return "Advanced: Complex mixed operations"
    return "Expert: Master level with square roots"


def performance_rating(accuracy: float, average_time: float) -> str:
    if accuracy >= 90 and average_time <= 8:
        return "Exceptional"
    if accuracy >= 80 and average_time <= 10:
        return "Excellent"
    if accuracy >= 70 and average_time <= 12:
        return "Very Good"
    if accuracy >= 60:
        return "Good"
    return "Needs Practice"


def get_difficulty_profile(
    level_or_question: int | DifficultyLevel | str,
    total_or_variant: Union[int, GameVariant, str] = GameVariant.PATH_FINDER,
) -> DifficultyConfig | QuestionProfile:
    """Single entry point over the three profile shapes.

    - ``(question_number, total_questions)`` -> QuestionProfile
    - ``(level_number, variant_or_company)`` -> level DifficultyConfig; a company
      name sets the difficulty modifier
    - ``(difficulty, variant)`` -> key/door maze DifficultyConfig
    """
    if isinstance(total_or_variant, int) and not isinstance(total_or_variant, bool):
        return question_profile(int(level_or_question), total_or_variant)

    if isinstance(level_or_question, str) and not isinstance(level_or_question, DifficultyLevel):
        if level_or_question.isdigit():
            level_or_question = int(level_or_question)

    if isinstance(level_or_question, (DifficultyLevel, str)):
        return maze_profile(total_or_variant, level_or_question)

    profile = level_profile(level_or_question)
    selector = total_or_variant.value if isinstance(total_or_variant, GameVariant) else str(total_or_variant)
    if selector in {v.value for v in GameVariant}:
        return profile.to_config(1.0)
    return profile.to_config(company_modifier(selector))
