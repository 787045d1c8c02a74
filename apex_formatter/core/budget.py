"""
Work Budget Module

Deterministic per-file work counter. Parser and rule engine tick it for every
token or node they visit, so a pathological file fails the same way on every
machine instead of depending on wall-clock time.
"""

from .errors import BudgetExceeded


class WorkBudget:
    """Counter of visited tokens/nodes with a hard limit."""

    def __init__(self, limit: int):
        self.limit = limit
        self.used = 0
        self.phase = ""

    def tick(self, units: int = 1):
        """Consume work units, raising BudgetExceeded past the limit."""
        self.used += units
        if self.used > self.limit:
            raise BudgetExceeded(self.limit, self.phase)

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.used)

    def __repr__(self):
        return f"WorkBudget(used={self.used}, limit={self.limit})"
