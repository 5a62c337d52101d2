"""Integration tests for the Anchor Care Log MCP server."""

from __future__ import annotations

import json

import pytest
from fastmcp import Client

from anchor.core.server.app import create_app
from anchor.core.server.main import _is_loopback_host
from conftest import RECIPIENT_ID, TODAY, FakeDraftRepository, _run

ALL_EXPECTED_TOOLS = [
    "health_check",
    "load_today_draft",
    "update_draft",
    "vitals_alerts",
    "section_status",
    "save_draft_now",
    "autosave_status",
    "share_section",
    "submit_care_log",
    "care_log_history",
    "family_view",
    "invalidate_care_log",
]


def _payload(result) -> dict:
    return json.loads(result.content[0].text)


@pytest.fixture
def repo():
    return FakeDraftRepository()


@pytest.fixture
def client(repo, session, template):
    """An MCP client connected to a server backed by the fake repository."""
    mcp = create_app(
        repository_override=repo,
        session_override=session,
        template_override=template,
        today_override=lambda: TODAY,
    )
    return Client(mcp)


def test_server_starts_and_lists_tools(client):
    """Server should start and expose all registered tools."""
    async def _check():
        async with client:
            tools = await client.list_tools()
            tool_names = [t.name for t in tools]
            for expected in ALL_EXPECTED_TOOLS:
                assert expected in tool_names, f"Missing tool: {expected}"
    _run(_check())


def test_health_check_returns_ok(client):
    """health_check tool should return status ok."""
    async def _check():
        async with client:
            result = await client.call_tool("health_check", {})
            status = _payload(result)
            assert status["status"] == "ok"
            assert status["repository_backend"] == "override"
            assert status["scheduled_medications"] == 3
            assert status["draft_loaded"] is False
    _run(_check())


def test_resources_and_prompts_registered(client):
    async def _check():
        async with client:
            resources = {str(r.uri) for r in await client.list_resources()}
            assert {"carelog://sections", "carelog://medication-template"} <= resources

            contents = await client.read_resource("carelog://medication-template")
            template = json.loads(contents[0].text)
            assert template["medication_count"] == 3
            assert template["medications"][0]["name"] == "Glucophage 500mg"

            prompts = {p.name for p in await client.list_prompts()}
            assert {"morning_check_in_prompt", "end_of_day_review_prompt"} <= prompts
    _run(_check())


def test_load_update_share_submit(client, repo):
    async def _check():
        async with client:
            loaded = _payload(await client.call_tool("load_today_draft", {}))
            assert loaded["status"] == "ok"
            assert loaded["draft"]["id"] is None
            assert loaded["draft"]["careRecipientId"] == RECIPIENT_ID

            updated = _payload(await client.call_tool(
                "update_draft",
                {"changes": {"wakeTime": "07:00", "bloodPressure": "190/70"}},
            ))
            assert updated["status"] == "updated"
            assert updated["updated_keys"] == ["bloodPressure", "wakeTime"]
            assert updated["alerts"][0]["level"] == "critical"

            alerts = _payload(await client.call_tool("vitals_alerts", {}))
            assert alerts["critical"] is True

            shared = _payload(await client.call_tool("share_section", {"section": "morning"}))
            assert shared["status"] == "shared"
            assert set(shared["completedSections"]) == {"morning"}

            view = _payload(await client.call_tool("family_view", {}))
            assert view["status"] == "ok"
            assert view["log"]["visibleSections"] == ["morning"]
            assert view["log"]["wakeTime"] == "07:00"

            submitted = _payload(await client.call_tool("submit_care_log", {}))
            assert submitted == {"status": "submitted", "draft_id": "log-1"}

            locked = _payload(await client.call_tool(
                "update_draft", {"changes": {"notes": "late note"}}
            ))
            assert locked["status"] == "locked"
    _run(_check())
    assert repo.count("create") == 1
    assert repo.count("submit") == 1


def test_malformed_update_returns_parse_error(client):
    async def _check():
        async with client:
            result = _payload(await client.call_tool(
                "update_draft", {"changes": {"meals": {"breakfast": "07:00"}}}
            ))
            assert result["status"] == "error"
            assert result["error"]["kind"] == "parse"
            assert result["error"]["blocking"] is True
            assert "breakfast" in result["error"]["message"]

            status = _payload(await client.call_tool("autosave_status", {}))
            assert status["dirty"] is False
    _run(_check())


def test_section_status_reports_unaccompanied_minutes(client):
    async def _check():
        async with client:
            await client.call_tool("update_draft", {"changes": {"unaccompaniedTime": [
                {"startTime": "14:00", "endTime": "13:00", "reason": "Errand"},
                {"startTime": "09:00", "endTime": "09:45", "reason": "Pharmacy"},
            ]}})
            status = _payload(await client.call_tool("section_status", {}))
            assert status["unaccompanied_minutes"] == 45
            assert status["all_sections_complete"] is False
    _run(_check())


def test_incomplete_submit_lists_missing_fields(client):
    async def _check():
        async with client:
            await client.call_tool(
                "update_draft",
                {"changes": {"medications": [{"name": "Forxiga 10mg", "given": True}]}},
            )
            result = _payload(await client.call_tool("submit_care_log", {}))
            assert result["status"] == "error"
            assert result["error"]["blocking"] is True
            assert result["missing"]
    _run(_check())


def test_unknown_section_is_reported(client):
    async def _check():
        async with client:
            result = _payload(await client.call_tool("share_section", {"section": "overnight"}))
            assert result["status"] == "error"
    _run(_check())


def test_history_before_first_save(client):
    async def _check():
        async with client:
            result = _payload(await client.call_tool("care_log_history", {}))
            assert result["status"] == "not_saved"
    _run(_check())


def test_invalidate_requires_reason(client):
    async def _check():
        async with client:
            result = _payload(await client.call_tool(
                "invalidate_care_log",
                {"log_id": "log-1", "reason": "  ", "invalidated_by": "family-1"},
            ))
            assert result["status"] == "error"
    _run(_check())


def test_network_failure_is_not_blocking(repo, session, template):
    from anchor.domains.care_log.engine.repository import RepositoryConnectionError

    repo.fail_with = RepositoryConnectionError("offline")
    client = Client(create_app(
        repository_override=repo,
        session_override=session,
        template_override=template,
        today_override=lambda: TODAY,
    ))

    async def _check():
        async with client:
            result = _payload(await client.call_tool("load_today_draft", {}))
            assert result["status"] == "error"
            assert result["error"]["blocking"] is False
    _run(_check())


class _ClosingRepository(FakeDraftRepository):
    def __init__(self) -> None:
        super().__init__()
        self.closed = 0

    async def aclose(self) -> None:
        self.closed += 1


def test_lifespan_closes_repository(session, template):
    repo = _ClosingRepository()
    client = Client(create_app(
        repository_override=repo,
        session_override=session,
        template_override=template,
        today_override=lambda: TODAY,
    ))

    async def _check():
        async with client:
            await client.call_tool("health_check", {})
            assert repo.closed == 0
    _run(_check())
    assert repo.closed >= 1


def test_lifespan_tolerates_repository_without_aclose(client, repo):
    async def _check():
        async with client:
            result = _payload(await client.call_tool("health_check", {}))
            assert result["status"] == "ok"
    _run(_check())
    assert not hasattr(repo, "aclose")


class TestLoopbackGuard:
    @pytest.mark.parametrize("host", ["127.0.0.1", "::1", "[::1]", "localhost"])
    def test_loopback(self, host):
        assert _is_loopback_host(host)

    @pytest.mark.parametrize("host", ["0.0.0.0", "192.168.1.10", "example.org"])
    def test_not_loopback(self, host):
        assert not _is_loopback_host(host)
