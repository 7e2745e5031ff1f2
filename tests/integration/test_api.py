"""
Integration tests for the workflow REST API.

Exercises the routes in-process over httpx's ASGI transport with a
scripted reasoning client behind the engine.
"""
import httpx
import pytest
from fastapi import FastAPI

from agents_engine.api import RunManager, router, set_dependencies
from agents_engine.models import FunctionTool
from agents_engine.sandbox.registry import ToolRegistry

from support import ScriptedReasoningClient, agent, calls, definition, text

DOCUMENT = {
    "agents": {
        "clerk": {"name": "Clerk", "instructions": "Help ${customer}.", "tools": ["archive"]},
    },
    "workflow": {"entry_point": "clerk", "max_turns": 4},
}


@pytest.fixture
def build_client(make_engine, audit_log):
    """Factory returning an httpx client bound to a fresh app."""
    def factory(responses, default_definition=None, max_results=1000):
        registry = ToolRegistry([
            FunctionTool(name="archive", handler=lambda record: f"archived {record}", needs_approval=True),
        ])
        engine = make_engine(ScriptedReasoningClient(responses), registry=registry)
        set_dependencies(RunManager(engine, default_definition, max_results=max_results), audit_log)

        app = FastAPI()
        app.include_router(router)
        return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")

    yield factory
    set_dependencies(None, None)


class TestValidateEndpoint:
    """Test definition validation over HTTP."""

    @pytest.mark.asyncio
    async def test_valid_document(self, build_client):
        async with build_client([]) as client:
            response = await client.post("/api/v1/workflows/validate", json={"definition": DOCUMENT})

        assert response.status_code == 200
        assert response.json() == {"valid": True, "errors": [], "warnings": []}

    @pytest.mark.asyncio
    async def test_reference_errors_reported(self, build_client):
        document = {
            "agents": {"a": {"name": "A", "instructions": "Hi", "handoffs": ["ghost"]}},
            "workflow": {"entry_point": "a"},
        }
        async with build_client([]) as client:
            response = await client.post("/api/v1/workflows/validate", json={"definition": document})

        data = response.json()
        assert data["valid"] is False
        assert data["errors"][0]["code"] == "handoff_unknown_target"

    @pytest.mark.asyncio
    async def test_malformed_document_is_400(self, build_client):
        async with build_client([]) as client:
            response = await client.post("/api/v1/workflows/validate", json={"definition": {"agents": {}}})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_no_definition_and_no_default_is_400(self, build_client):
        async with build_client([]) as client:
            response = await client.post("/api/v1/workflows/validate", json={})

        assert response.status_code == 400


class TestRunEndpoints:
    """Test starting, fetching and resuming runs."""

    @pytest.mark.asyncio
    async def test_run_with_inline_document(self, build_client):
        async with build_client([text("Hello Ada")]) as client:
            response = await client.post(
                "/api/v1/runs",
                json={"input": "hi", "definition": DOCUMENT, "variables": {"customer": "Ada"}},
            )

        assert response.status_code == 200
        data = response.json()
        assert data["exit_code"] == 0
        assert data["result"]["status"] == "completed"
        assert data["result"]["output"] == "Hello Ada"
        assert data["result"]["trace"][0]["messages"][0]["content"] == "Help Ada."

    @pytest.mark.asyncio
    async def test_run_uses_default_definition(self, build_client):
        default = definition({"solo": agent("Solo")})
        async with build_client([text("default answer")], default_definition=default) as client:
            response = await client.post("/api/v1/runs", json={"input": "hi"})

        assert response.json()["result"]["output"] == "default answer"

    @pytest.mark.asyncio
    async def test_get_run(self, build_client):
        async with build_client([text("stored")]) as client:
            started = await client.post("/api/v1/runs", json={"input": "hi", "definition": DOCUMENT})
            run_id = started.json()["result"]["run_id"]

            fetched = await client.get(f"/api/v1/runs/{run_id}")
            missing = await client.get("/api/v1/runs/run_nope")

        assert fetched.status_code == 200
        assert fetched.json()["result"]["output"] == "stored"
        assert missing.status_code == 404

    @pytest.mark.asyncio
    async def test_oldest_results_evicted(self, build_client):
        """The service keeps only the most recent results."""
        async with build_client([text("one"), text("two")], max_results=1) as client:
            first = await client.post("/api/v1/runs", json={"input": "a", "definition": DOCUMENT})
            second = await client.post("/api/v1/runs", json={"input": "b", "definition": DOCUMENT})

            evicted = await client.get(f"/api/v1/runs/{first.json()['result']['run_id']}")
            kept = await client.get(f"/api/v1/runs/{second.json()['result']['run_id']}")

        assert evicted.status_code == 404
        assert kept.json()["result"]["output"] == "two"

    @pytest.mark.asyncio
    async def test_interrupt_and_resume(self, build_client):
        """An approval-gated call interrupts the run until a decision is posted."""
        responses = [calls(("call_1", "archive", {"record": "r7"})), text("Archived r7")]
        async with build_client(responses) as client:
            started = await client.post("/api/v1/runs", json={"input": "archive r7", "definition": DOCUMENT})
            data = started.json()
            assert data["exit_code"] == 4
            assert data["result"]["status"] == "interrupted"
            assert data["result"]["interruptions"][0]["call"]["id"] == "call_1"
            run_id = data["result"]["run_id"]

            resumed = await client.post(
                f"/api/v1/runs/{run_id}/resume",
                json={"decisions": [{"call_id": "call_1", "approved": True, "approver": "ops"}]},
            )
            again = await client.post(f"/api/v1/runs/{run_id}/resume", json={"decisions": []})

        assert resumed.status_code == 200
        assert resumed.json()["result"]["status"] == "completed"
        assert resumed.json()["result"]["output"] == "Archived r7"
        assert again.status_code == 404


class TestAuditEndpoint:
    """Test audit queries."""

    @pytest.mark.asyncio
    async def test_audit_filtered_by_run(self, build_client):
        async with build_client([text("one"), text("two")]) as client:
            first = await client.post("/api/v1/runs", json={"input": "a", "definition": DOCUMENT})
            await client.post("/api/v1/runs", json={"input": "b", "definition": DOCUMENT})
            run_id = first.json()["result"]["run_id"]

            response = await client.get("/api/v1/audit", params={"run_id": run_id})
            limited = await client.get("/api/v1/audit", params={"event_type": "run_started", "limit": 1})

        events = response.json()["events"]
        assert {e["run_id"] for e in events} == {run_id}
        assert [e["event_type"] for e in events] == ["run_started", "session_activated", "run_finished"]
        assert limited.json()["total"] == 2
        assert len(limited.json()["events"]) == 1
