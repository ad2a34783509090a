from __future__ import annotations

import math
import random
from dataclasses import dataclass

from difficulty import QuestionProfile

PERFECT_SQUARES = (4, 9, 16, 25, 36, 49, 64, 81, 100, 121, 144, 169, 196, 225)
BASE_OPERATIONS = ("addition", "subtraction", "multiplication", "division")


@dataclass(frozen=True)
class Expression:
    text: str
    result: float
    operation_type: str
    has_decimals: bool
    complexity_score: int


def correct_sequence(expressions: list[Expression]) -> list[int]:
    """Rank of each expression (0 = smallest result), in display order."""
    order = sorted(range(len(expressions)), key=lambda i: expressions[i].result)
    ranks = [0] * len(expressions)
    for rank, idx in enumerate(order):
        ranks[idx] = rank
    return ranks


def selection_order(expressions: list[Expression]) -> list[int]:
    """Display indices in the order a player should pick them (ascending result)."""
    return sorted(range(len(expressions)), key=lambda i: expressions[i].result)


def is_ascending_selection(expressions: list[Expression], sequence: list[int]) -> bool:
    """True when ``sequence`` picks every bubble once, smallest result first.

    Bubbles with equal results may be picked in either order.
    """
    if sorted(sequence) != list(range(len(expressions))):
        return False
    results = [expressions[i].result for i in sequence]
    return all(a <= b for a, b in zip(results, results[1:]))


class ExpressionGenerator:
    def __init__(self, rng: random.Random | None = None, *, seed: int | None = None):
        self.rng = rng if rng is not None else random.Random(seed)

    def _int(self, lo: int, hi: int) -> int:
        return self.rng.randint(lo, hi)

    def _dec(self, lo: float, hi: float) -> float:
        return round(self.rng.uniform(lo, hi), 1)

    def _square_root(self) -> Expression:
        base = self.rng.choice(PERFECT_SQUARES)
        return Expression(f"√{base}", math.isqrt(base), "mixed", False, 6)

    def _addition(self, profile: QuestionProfile) -> Expression:
        lo, hi = profile.value_range
        if profile.allow_decimals and self.rng.random() > 0.5:
            a, b = self._dec(lo, hi), self._dec(lo, hi)
            return Expression(f"{a}+{b}", round(a + b, 1), "addition", True, 4)
        a, b = self._int(lo, hi), self._int(lo, hi)
        return Expression(f"{a}+{b}", a + b, "addition", False, 2)

    def _subtraction(self, profile: QuestionProfile) -> Expression:
        lo, hi = profile.value_range
        if profile.allow_decimals and self.rng.random() > 0.5:
            a = self._dec(lo, hi)
            b = self._dec(lo, min(a, hi))
            return Expression(f"{a}-{b}", round(a - b, 1), "subtraction", True, 5)
        a = self._int(lo, hi)
        b = self._int(lo, a)
        return Expression(f"{a}-{b}", a - b, "subtraction", False, 3)

    def _multiplication(self, profile: QuestionProfile) -> Expression:
        if profile.allow_decimals and self.rng.random() > 0.6:
            a, b = self._dec(2, 6), self._dec(1, 4)
            return Expression(f"{a}×{b}", round(a * b, 1), "multiplication", True, 7)
        a, b = self._int(2, 12), self._int(2, 12)
        return Expression(f"{a}×{b}", a * b, "multiplication", False, 5)

    def _division(self, profile: QuestionProfile) -> Expression:
        if profile.allow_decimals and self.rng.random() > 0.5:
            divisor = self._dec(1.5, 4.5)
            quotient = self._dec(2, 8)
            dividend = round(divisor * quotient, 1)
            return Expression(f"{dividend}÷{divisor}", quotient, "division", True, 8)
        divisor, quotient = self._int(2, 12), self._int(2, 12)
        return Expression(f"{divisor * quotient}÷{divisor}", quotient, "division", False, 6)

    def _mixed(self, profile: QuestionProfile) -> Expression:
        kind = self.rng.randrange(3)
        if profile.allow_decimals and self.rng.random() > 0.5:
            if kind == 0:
                a, b, c = self._dec(1, 5), self._dec(1, 3), self._dec(1.5, 3)
                return Expression(f"({a}+{b})×{c}", round(round(a + b, 1) * c, 1), "mixed", True, 9)
            if kind == 1:
                a, b = self._dec(2, 4), self._dec(2, 4)
                product = round(a * b, 1)
                c = self._dec(1, product - 1)
                return Expression(f"{a}×{b}-{c}", round(product - c, 1), "mixed", True, 10)
            b, quotient = self._dec(2, 4), self._dec(3, 6)
            c = self._dec(1, 5)
            return Expression(f"{round(b * quotient, 1)}÷{b}+{c}", round(quotient + c, 1), "mixed", True, 11)

        if kind == 0:
            a, b, c = self._int(2, 8), self._int(2, 8), self._int(2, 5)
            return Expression(f"({a}+{b})×{c}", (a + b) * c, "mixed", False, 7)
        if kind == 1:
            a, b = self._int(3, 8), self._int(3, 8)
            hi = a * b - 5
            c = self._int(min(5, hi), hi)
            return Expression(f"{a}×{b}-{c}", a * b - c, "mixed", False, 8)
        b, quotient, c = self._int(3, 6), self._int(4, 10), self._int(2, 8)
        return Expression(f"{b * quotient}÷{b}+{c}", quotient + c, "mixed", False, 9)

    def generate_expression(self, profile: QuestionProfile) -> Expression:
        if profile.include_square_root and self.rng.random() > 0.7:
            return self._square_root()

        if "mixed" in profile.operation_types:
            operation = self.rng.choice(BASE_OPERATIONS + ("mixed",))
        else:
            operation = self.rng.choice(profile.operation_types)

        builder = {
            "addition": self._addition,
            "subtraction": self._subtraction,
            "multiplication": self._multiplication,
            "division": self._division,
            "mixed": self._mixed,
        }[operation]
        return builder(profile)

    def generate_question_set(self, profile: QuestionProfile) -> list[Expression]:
        """``profile.bubble_count`` expressions, with distinct results where possible."""
        expressions: list[Expression] = []
        seen: set[int] = set()
        attempts = 0
        max_attempts = profile.bubble_count * 30
        while len(expressions) < profile.bubble_count and attempts < max_attempts:
            attempts += 1
            expr = self.generate_expression(profile)
            key = round(expr.result * 10)
            if key in seen:
                continue
            seen.add(key)
            expressions.append(expr)

        # Widen the search to every operation before settling for a tie.
        attempts = 0
        while len(expressions) < profile.bubble_count and attempts < max_attempts:
            attempts += 1
            expr = self._square_root() if attempts % 4 == 0 else self._mixed(profile)
            key = round(expr.result * 10)
            if key not in seen:
                seen.add(key)
                expressions.append(expr)

        while len(expressions) < profile.bubble_count:
            expressions.append(self.generate_expression(profile))
        return expressions
