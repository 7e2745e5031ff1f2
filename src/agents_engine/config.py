"""
Configuration for the agents workflow engine service.
"""

import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class EngineSettings:
    """Application configuration."""

    # LiteLLM (OpenAI-compatible completion service)
    litellm_url: str = os.getenv("LITELLM_URL", "http://localhost:4000")
    litellm_api_key: Optional[str] = os.getenv("LITELLM_API_KEY")
    default_model: str = os.getenv("DEFAULT_MODEL", "gpt-4o-mini")

    # Reasoning retries
    reasoning_timeout_seconds: float = float(os.getenv("REASONING_TIMEOUT_SECONDS", "60"))
    reasoning_max_attempts: int = int(os.getenv("REASONING_MAX_ATTEMPTS", "3"))
    reasoning_backoff_multiplier: float = float(os.getenv("REASONING_BACKOFF_MULTIPLIER", "0.5"))
    reasoning_backoff_max: float = float(os.getenv("REASONING_BACKOFF_MAX", "8"))

    # Tool execution
    tool_timeout_seconds: float = float(os.getenv("TOOL_TIMEOUT_SECONDS", "30"))
    cancellation_grace_seconds: float = float(os.getenv("CANCELLATION_GRACE_SECONDS", "1"))

    # Retention of interrupted runs and finished results
    max_suspended_runs: int = int(os.getenv("MAX_SUSPENDED_RUNS", "1000"))
    max_stored_results: int = int(os.getenv("MAX_STORED_RESULTS", "1000"))

    # Default workflow document served when requests carry none
    workflow_config_path: Optional[str] = os.getenv("WORKFLOW_CONFIG_PATH")

    # Audit trail (JSON lines); in memory only when unset
    audit_log_path: Optional[str] = os.getenv("AUDIT_LOG_PATH")

    # Agent Gateway (for MCP tools)
    agent_gateway_url: str = os.getenv("AGENT_GATEWAY_URL", "http://localhost:3000")

    # OpenTelemetry
    otel_endpoint: str = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4317")

    # Server
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "8090"))
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


settings = EngineSettings()
