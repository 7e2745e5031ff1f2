"""
Agents Workflow Engine Service

A FastAPI service for running multi-agent workflows with:
- Handoff-chain, sequential and parallel agent composition
- Sandboxed tool execution with policy checks and human approval
- Input/output guardrails
- Bounded retries against the LiteLLM completion service
- Append-only, redacted audit trail
"""

import logging
from typing import Optional
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from opentelemetry import trace
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.resources import Resource

from .config import settings
from .core.audit import AuditLog
from .core.loader import LoadedWorkflow, load_workflow
from .engine.workflow import WorkflowEngine
from .guardrails.checker import GuardrailChecker
from .reasoning.litellm_client import LiteLLMReasoningClient
from .sandbox.executor import ToolExecutionSandbox
from .sandbox.registry import ToolRegistry
from .tools import HostedToolClient, MCPClient, builtin_tools
from .api.manager import RunManager
from .api.routes import router, set_dependencies

# Configure logging
logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)


# Global resources
reasoning_client: Optional[LiteLLMReasoningClient] = None
mcp_client: Optional[MCPClient] = None
hosted_client: Optional[HostedToolClient] = None


def build_engine(
    loaded: Optional[LoadedWorkflow],
    reasoning: LiteLLMReasoningClient,
    mcp: MCPClient,
    hosted: HostedToolClient,
    audit_log: AuditLog,
) -> WorkflowEngine:
    """Wire the engine from settings and an optional workflow document."""
    registry = ToolRegistry(builtin_tools())
    guardrails = GuardrailChecker()
    policy = None

    if loaded:
        for tool in loaded.tools:
            registry.register(tool)
        for guardrail in loaded.guardrails:
            guardrails.register(guardrail, replace=True)
        policy = loaded.policy

    sandbox = ToolExecutionSandbox(
        registry.freeze(),
        policy=policy,
        audit_log=audit_log,
        mcp_clients={"agent-gateway": mcp},
        hosted_client=hosted,
        default_timeout=settings.tool_timeout_seconds,
        grace_period=settings.cancellation_grace_seconds,
    )
    return WorkflowEngine(
        reasoning,
        sandbox=sandbox,
        guardrails=guardrails,
        default_model=settings.default_model,
        max_attempts=settings.reasoning_max_attempts,
        backoff_multiplier=settings.reasoning_backoff_multiplier,
        backoff_max=settings.reasoning_backoff_max,
        grace_period=settings.cancellation_grace_seconds,
        max_suspended_runs=settings.max_suspended_runs,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    global reasoning_client, mcp_client, hosted_client

    # Setup OpenTelemetry
    resource = Resource.create({"service.name": "agents-engine"})
    provider = TracerProvider(resource=resource)
    processor = BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otel_endpoint))
    provider.add_span_processor(processor)
    trace.set_tracer_provider(provider)

    # Create clients
    reasoning_client = LiteLLMReasoningClient(
        base_url=settings.litellm_url,
        api_key=settings.litellm_api_key,
        timeout=settings.reasoning_timeout_seconds,
    )
    mcp_client = MCPClient(base_url=settings.agent_gateway_url)
    hosted_client = HostedToolClient(base_url=settings.litellm_url, api_key=settings.litellm_api_key)

    loaded = None
    if settings.workflow_config_path:
        loaded = load_workflow(settings.workflow_config_path)

    audit_log = AuditLog(settings.audit_log_path)
    engine = build_engine(loaded, reasoning_client, mcp_client, hosted_client, audit_log)

    if loaded:
        report = engine.validate(loaded.definition)
        for issue in report.warnings:
            logger.warning(f"Default workflow: {issue.message}")
        report.raise_for_errors()

    run_manager = RunManager(
        engine,
        default_definition=loaded.definition if loaded else None,
        max_results=settings.max_stored_results,
    )
    set_dependencies(run_manager, audit_log)

    logger.info("Agents workflow engine service started")
    yield

    # Cleanup
    await reasoning_client.close()
    await mcp_client.close()
    await hosted_client.close()

    logger.info("Agents workflow engine service stopped")


app = FastAPI(
    title="Agents Workflow Engine",
    description="Multi-agent workflow orchestration with sandboxed tools and guardrails",
    version="0.1.0",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Instrument with OpenTelemetry
FastAPIInstrumentor.instrument_app(app)

# Include API routes
app.include_router(router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


def main():
    import uvicorn
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
