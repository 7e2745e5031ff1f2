"""Approval checks for tool execution."""

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from ..models.tools import BaseTool

logger = logging.getLogger(__name__)

RISK_LEVEL_ORDER = ["critical", "high", "medium", "low"]


@dataclass
class ApprovalRequirement:
    """Whether a call must wait for a human, and why."""

    needs_approval: bool
    reason: str = ""
    risk_level: str = "low"


class ApprovalChecker:
    """Decides which tool calls are suspended as interruptions.

    Checks in priority order:
    1. Custom checker registered for the tool
    2. Static needs_approval flag on the tool
    3. The tool's own approval predicate over the arguments
    4. Global risk patterns matched against every argument value
    """

    def __init__(self, risk_patterns: Optional[Dict[str, List[str]]] = None):
        """
        Args:
            risk_patterns: Risk level to list of regexes forcing approval
        """
        self.custom_checkers: Dict[str, Callable[[Dict[str, Any]], ApprovalRequirement]] = {}
        self.risk_patterns = {
            level: [re.compile(p, re.IGNORECASE) for p in patterns]
            for level, patterns in (risk_patterns or {}).items()
        }

    def register_checker(self, tool_name: str, checker: Callable[[Dict[str, Any]], ApprovalRequirement]) -> None:
        """Register a custom approval check for one tool."""
        self.custom_checkers[tool_name] = checker

    def check(self, tool: BaseTool, arguments: Dict[str, Any]) -> ApprovalRequirement:
        """
        Check whether a call needs approval.

        Args:
            tool: Resolved tool
            arguments: Decoded call arguments

        Returns:
            ApprovalRequirement
        """
        if tool.name in self.custom_checkers:
            return self.custom_checkers[tool.name](arguments)

        if tool.needs_approval:
            return ApprovalRequirement(
                needs_approval=True,
                reason=f"Tool {tool.name} always requires approval",
                risk_level="medium",
            )

        if tool.approval_predicate is not None and tool.approval_predicate(arguments):
            return ApprovalRequirement(
                needs_approval=True,
                reason=f"Arguments to {tool.name} require approval",
                risk_level="medium",
            )

        return self._check_risk_patterns(arguments)

    def _check_risk_patterns(self, arguments: Dict[str, Any]) -> ApprovalRequirement:
        if not self.risk_patterns:
            return ApprovalRequirement(needs_approval=False)

        args_str = " ".join(str(v) for v in arguments.values())

        for level in RISK_LEVEL_ORDER:
            for pattern in self.risk_patterns.get(level, []):
                if pattern.search(args_str):
                    return ApprovalRequirement(
                        needs_approval=True,
                        reason=f"Arguments match {level} risk pattern {pattern.pattern!r}",
                        risk_level=level,
                    )

        return ApprovalRequirement(needs_approval=False)
