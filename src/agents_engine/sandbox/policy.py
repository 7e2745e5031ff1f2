"""
Security policy for tool execution.

Only policy decisions live here; process isolation is out of scope.
"""

import fnmatch
import json
import logging
from pathlib import Path
from typing import Optional, List, Dict, Any, Tuple
from urllib.parse import urlparse

from pydantic import BaseModel, Field

from ..models.tools import BaseTool, ToolCall

logger = logging.getLogger(__name__)


class SecurityPolicy(BaseModel):
    """
    Access policy and resource ceilings applied to every tool call.

    allowed_paths / allowed_hosts of None mean unrestricted; an empty tuple
    denies every path or URL argument.
    """
    allowed_paths: Optional[Tuple[str, ...]] = Field(default=None, description="Filesystem roots tools may touch")
    allowed_hosts: Optional[Tuple[str, ...]] = Field(default=None, description="Host names or glob patterns")
    denied_tools: Tuple[str, ...] = Field(default=(), description="Tools that may never run")
    max_timeout_seconds: float = Field(default=60.0, gt=0)
    max_output_bytes: int = Field(default=1_000_000, ge=1)
    max_argument_bytes: int = Field(default=64_000, ge=1)
    max_concurrent_calls: int = Field(default=8, ge=1)
    risk_patterns: Dict[str, List[str]] = Field(
        default_factory=dict,
        description="Risk level to regex patterns that force approval",
    )

    class Config:
        frozen = True


class PolicyDecision(BaseModel):
    """Result of a policy evaluation."""
    decision: str = Field(..., description="allow, deny")
    reasons: List[str] = Field(default_factory=list)
    error_type: Optional[str] = None

    @property
    def is_allowed(self) -> bool:
        return self.decision == "allow"


class PolicyEngine:
    """Evaluates a SecurityPolicy against individual tool calls."""

    def __init__(self, policy: Optional[SecurityPolicy] = None):
        self.policy = policy or SecurityPolicy()
        self._roots = (
            [Path(p).expanduser().resolve() for p in self.policy.allowed_paths]
            if self.policy.allowed_paths is not None else None
        )

    def timeout_for(self, tool: BaseTool, default: float) -> float:
        """Effective timeout: tool setting or default, capped by the policy."""
        requested = tool.timeout_seconds or default
        return min(requested, self.policy.max_timeout_seconds)

    def evaluate(self, tool: BaseTool, call: ToolCall) -> PolicyDecision:
        """
        Evaluate whether a call may run.

        Args:
            tool: Resolved tool
            call: Requested call

        Returns:
            PolicyDecision with the reasons for any denial
        """
        if tool.name in self.policy.denied_tools:
            return PolicyDecision(decision="deny", reasons=[f"Tool {tool.name} is denied by policy"], error_type="policy_denied")

        size = len(json.dumps(call.arguments, default=str))
        if size > self.policy.max_argument_bytes:
            return PolicyDecision(
                decision="deny",
                reasons=[f"Arguments are {size} bytes, limit is {self.policy.max_argument_bytes}"],
                error_type="resource_limit",
            )

        reasons = []
        for param in tool.path_params:
            value = call.arguments.get(param)
            if isinstance(value, str) and not self._path_allowed(value):
                reasons.append(f"Path {value!r} is outside the allowed roots")

        for param in tool.url_params:
            value = call.arguments.get(param)
            if isinstance(value, str) and not self._host_allowed(value):
                reasons.append(f"Host of {value!r} is not allowed")

        if reasons:
            return PolicyDecision(decision="deny", reasons=reasons, error_type="policy_denied")
        return PolicyDecision(decision="allow")

    def check_output(self, data: Any) -> Optional[str]:
        """Return a reason if the tool output exceeds the output ceiling."""
        size = len(json.dumps(data, default=str))
        if size > self.policy.max_output_bytes:
            return f"Output is {size} bytes, limit is {self.policy.max_output_bytes}"
        return None

    def _path_allowed(self, value: str) -> bool:
        if self._roots is None:
            return True
        try:
            target = Path(value).expanduser().resolve()
        except (ValueError, OSError, RuntimeError):
            return False
        return any(target == root or root in target.parents for root in self._roots)

    def _host_allowed(self, value: str) -> bool:
        if self.policy.allowed_hosts is None:
            return True
        try:
            host = urlparse(value).hostname
        except ValueError:
            return False
        if not host:
            return False
        for pattern in self.policy.allowed_hosts:
            if host == pattern or host.endswith("." + pattern) or fnmatch.fnmatch(host, pattern):
                return True
        return False
