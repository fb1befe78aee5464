"""
Integration tests for MCP tool endpoints.

Uses fake collaborators and mocks so tests do not require Milvus or a model API.
"""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from fakes import StaticPlugin, make_service
from orchestrator.main import create_app
from orchestrator.services.agent_service import AgentService
from orchestrator.services.retrieval_service import RetrievalMatch


@pytest.fixture
def client() -> TestClient:
    service = make_service(plugins=[StaticPlugin("echo", response="echo says hi")])
    return TestClient(create_app(service=service, auto_index=False))


def test_mcp_tool_discovery(client: TestClient) -> None:
    """GET /mcp/tools lists every tool by name."""
    response = client.get("/mcp/tools")
    assert response.status_code == 200
    names = [t["name"] for t in response.json()["tools"]]
    assert names == ["search_documents", "list_plugins", "execute_plugin", "system_stats"]


def test_mcp_search_documents_returns_results(client: TestClient) -> None:
    """POST /mcp/tools/search_documents returns 200 and { results: [{ content, score, source, title }] }."""
    fake_matches = [
        RetrievalMatch(content="Fake chunk one.", score=0.91, source="doc1.md", title="Doc One"),
        RetrievalMatch(content="Fake chunk two.", score=0.74, source="doc2.md", title="Doc Two"),
    ]
    with patch.object(AgentService, "search_documents", AsyncMock(return_value=fake_matches)) as mock_search:
        response = client.post(
            "/mcp/tools/search_documents",
            json={"query": "test question", "limit": 2},
        )
    assert response.status_code == 200
    assert response.json() == {
        "results": [
            {"content": "Fake chunk one.", "score": 0.91, "source": "doc1.md", "title": "Doc One"},
            {"content": "Fake chunk two.", "score": 0.74, "source": "doc2.md", "title": "Doc Two"},
        ]
    }
    mock_search.assert_awaited_once_with("test question", 2)


def test_mcp_search_documents_empty_query_returns_empty_results(client: TestClient) -> None:
    """POST with empty query returns 200 and empty results (search not called)."""
    with patch.object(AgentService, "search_documents", AsyncMock()) as mock_search:
        response = client.post(
            "/mcp/tools/search_documents",
            json={"query": "   "},
        )
    assert response.status_code == 200
    assert response.json() == {"results": []}
    mock_search.assert_not_called()


def test_mcp_search_documents_missing_body_returns_400(client: TestClient) -> None:
    """POST without body returns the VALIDATION_ERROR body."""
    response = client.post("/mcp/tools/search_documents")
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


# --- list_plugins ---

def test_mcp_list_plugins(client: TestClient) -> None:
    """POST /mcp/tools/list_plugins returns 200 and { plugins: [...] }."""
    response = client.post("/mcp/tools/list_plugins", json={})
    assert response.status_code == 200
    assert response.json() == {
        "plugins": [{"name": "echo", "description": "echo test plugin", "version": "1.0.0"}]
    }


# --- execute_plugin ---

def test_mcp_execute_plugin(client: TestClient) -> None:
    """POST /mcp/tools/execute_plugin runs the named plugin and returns its response."""
    response = client.post("/mcp/tools/execute_plugin", json={"plugin_name": "echo", "query": "hi"})
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["response"] == "echo says hi"
    assert data["error_code"] is None


def test_mcp_execute_unknown_plugin_is_a_result_not_an_error(client: TestClient) -> None:
    """Unknown plugins come back as an unsuccessful result with 200."""
    response = client.post("/mcp/tools/execute_plugin", json={"plugin_name": "nope", "query": "hi"})
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is False
    assert data["error_code"] == "NOT_FOUND"
    assert data["error"] == "Plugin 'nope' not found"


# --- system_stats ---

def test_mcp_system_stats_returns_stats(client: TestClient) -> None:
    """POST /mcp/tools/system_stats returns sessions, plugins and index status."""
    client.post("/agent/message", json={"message": "hello", "session_id": "s1"})
    response = client.post("/mcp/tools/system_stats", json={})
    assert response.status_code == 200
    assert response.json() == {
        "active_sessions": 1,
        "plugins": ["echo"],
        "index": {"initialized": False, "total_vectors": 0, "index_name": "knowledge_base", "provider": "memory"},
    }
