"""Arithmetic challenge shown before an order can be placed."""

from __future__ import annotations

import random
from dataclasses import dataclass

OPERATORS = ("+", "-", "×")


@dataclass(frozen=True)
class Captcha:
    """A question and its answer; regenerate by replacing the whole value."""

    question: str
    expected_answer: int

    def check(self, answer: int | str | None) -> bool:
        if answer is None:
            return False
        try:
            return int(str(answer).strip()) == self.expected_answer
        except ValueError:
            return False


def generate_captcha(rng: random.Random | None = None) -> Captcha:
    rng = rng or random.Random()
    first = rng.randint(1, 10)
    second = rng.randint(1, 10)
    operator = rng.choice(OPERATORS)

    if operator == "+":
        return Captcha(f"{first} + {second}", first + second)
    if operator == "-":
        high, low = max(first, second), min(first, second)
        return Captcha(f"{high} - {low}", high - low)
    return Captcha(f"{first} × {second}", first * second)
