"""
Run manager backing the HTTP API.
"""

import logging
from collections import OrderedDict
from typing import Any, Dict, List, Optional

from ..core.errors import ConfigurationError
from ..core.loader import parse_definition
from ..engine.validation import ValidationReport
from ..engine.workflow import WorkflowEngine
from ..models.definition import WorkflowDefinition
from ..models.results import WorkflowResult
from ..models.tools import ApprovalDecision

logger = logging.getLogger(__name__)


class RunManager:
    """
    Starts, resumes and remembers runs for the service.

    Only the most recent max_results results are kept.
    """

    def __init__(
        self,
        engine: WorkflowEngine,
        default_definition: Optional[WorkflowDefinition] = None,
        max_results: int = 1000,
    ):
        self.engine = engine
        self.default_definition = default_definition
        self.max_results = max_results
        self._results: "OrderedDict[str, WorkflowResult]" = OrderedDict()

    def resolve_definition(self, document: Optional[Dict[str, Any]]) -> WorkflowDefinition:
        """
        Pick the definition for a request.

        Raises:
            ConfigurationError: If neither a document nor a default is available
        """
        if document is not None:
            return parse_definition(document)
        if self.default_definition is None:
            raise ConfigurationError("No workflow definition supplied and no default configured")
        return self.default_definition

    def validate(self, document: Optional[Dict[str, Any]]) -> ValidationReport:
        return self.engine.validate(self.resolve_definition(document))

    async def start(
        self,
        input: Any,
        document: Optional[Dict[str, Any]] = None,
        variables: Optional[Dict[str, Any]] = None,
    ) -> WorkflowResult:
        definition = self.resolve_definition(document)
        result = await self.engine.run(definition, input, variables=variables)
        self._store(result)
        return result

    async def resume(self, run_id: str, decisions: List[ApprovalDecision]) -> WorkflowResult:
        result = await self.engine.resume(run_id, decisions)
        self._store(result)
        return result

    def get(self, run_id: str) -> Optional[WorkflowResult]:
        return self._results.get(run_id)

    def is_suspended(self, run_id: str) -> bool:
        return run_id in self.engine.suspended_runs()

    def _store(self, result: WorkflowResult) -> None:
        self._results.pop(result.run_id, None)
        self._results[result.run_id] = result
        while len(self._results) > self.max_results:
            evicted, _ = self._results.popitem(last=False)
            logger.debug(f"Evicted stored result for run {evicted}")
