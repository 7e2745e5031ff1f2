"""
Workflow-wide turn budget.
"""

from typing import Optional

from ..core.errors import TurnLimitExceeded


class TurnBudget:
    """
    Counts logical reasoning calls across every session of a run.

    Shared by all sessions of the run, including parallel lanes and nested
    agent tools. Retries of one call are not counted.
    """

    def __init__(self, max_turns: int):
        self.max_turns = max_turns
        self.used = 0

    @property
    def remaining(self) -> int:
        return max(self.max_turns - self.used, 0)

    def consume(self, session_id: Optional[str] = None) -> int:
        """
        Take one turn.

        Returns:
            The 1-based number of the turn just taken

        Raises:
            TurnLimitExceeded: If the budget is spent
        """
        if self.used >= self.max_turns:
            raise TurnLimitExceeded(
                f"Workflow exceeded max_turns={self.max_turns}",
                scope="workflow",
                session_id=session_id,
                turn=self.used,
            )
        self.used += 1
        return self.used
