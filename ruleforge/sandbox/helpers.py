"""
Helper objects injected into rule scripts.

Everything here is plain data-in/data-out so it can be exposed to the
sandbox without handing scripts any reference to the host.
"""

import math
import random
import re
from typing import Dict, List, Optional

_dice_re = re.compile(r"^\s*(\d+)\s*d\s*(\d+)\s*([+-]\s*\d+)?\s*$", re.I)


SAFE_FUNCTIONS = {
    "floor": lambda x: int(math.floor(x)),
    "ceil": lambda x: int(math.ceil(x)),
    "max": max,
    "min": min,
    "abs": abs,
    "round": round,
    "len": len,
    "int": int,
    "float": float,
    "str": str,
    "bool": bool,
}


class DiceRoller:
    """Exposed to scripts as `dice`."""

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()

    def roll(self, count_or_sides: int, sides: Optional[int] = None) -> int:
        """
        roll(20) rolls one d20; roll(3, 6) rolls 3d6 and returns the sum.
        """
        if sides is None:
            count, sides = 1, count_or_sides
        else:
            count = count_or_sides
        count, sides = int(count), int(sides)
        if sides < 1:
            raise ValueError(f"A die needs at least one side, got {sides}")
        if count < 0:
            raise ValueError(f"Cannot roll a negative number of dice: {count}")
        return sum(self._rng.randint(1, sides) for _ in range(count))

    def d4(self) -> int:
        return self.roll(4)

    def d6(self) -> int:
        return self.roll(6)

    def d8(self) -> int:
        return self.roll(8)

    def d10(self) -> int:
        return self.roll(10)

    def d12(self) -> int:
        return self.roll(12)

    def d20(self) -> int:
        return self.roll(20)

    def d100(self) -> int:
        return self.roll(100)

    def roll_spec(self, spec: str) -> Dict[str, object]:
        """Roll a dice specification such as '2d6+3'."""
        if not spec:
            raise ValueError("Missing dice specification.")
        m = _dice_re.match(spec.replace(" ", ""))
        if not m:
            raise ValueError(f"Invalid dice specification: {spec}")
        n, sides, mod = int(m.group(1)), int(m.group(2)), m.group(3)
        rolls: List[int] = [self.roll(sides) for _ in range(n)]
        modifier = int(mod.replace(" ", "")) if mod else 0
        total = sum(rolls) + modifier
        return {"total": total, "rolls": rolls, "modifier": modifier}


class RuleUtilities:
    """Exposed to scripts as `utils`."""

    @staticmethod
    def ability_modifier(ability_score: int) -> int:
        # Floors toward negative infinity: a score of 9 is -1, not 0.
        return int(math.floor((ability_score - 10) / 2))

    @staticmethod
    def proficiency_bonus(level: int) -> int:
        return (max(level, 1) - 1) // 4 + 2

    @staticmethod
    def is_valid_range(value: float, minimum: float, maximum: float) -> bool:
        return minimum <= value <= maximum


class MathNamespace:
    """Exposed to scripts as `Math`, so `Math.max(a, b)` reads naturally in rulesets."""

    floor = staticmethod(SAFE_FUNCTIONS["floor"])
    ceil = staticmethod(SAFE_FUNCTIONS["ceil"])
    max = staticmethod(max)
    min = staticmethod(min)
    abs = staticmethod(abs)
    round = staticmethod(round)
