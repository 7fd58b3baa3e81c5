"""Tests for the MCP tool functions."""

import json

import pytest

from tendril_backend import mcp_server


@pytest.fixture
def calls(monkeypatch):
    recorded = []

    def fake_request(method, endpoint, **kwargs):
        recorded.append((method, endpoint, kwargs))
        if endpoint == "/diagram/export":
            return {"text": '{"elements": []}'}
        return {"success": True}

    monkeypatch.setattr(mcp_server, "api_request", fake_request)
    return recorded


class TestTools:
    def test_add_node(self, calls):
        result = json.loads(mcp_server.diagram_add_node(label="API", x=10))
        assert result == {"success": True}
        method, endpoint, kwargs = calls[0]
        assert (method, endpoint) == ("POST", "/nodes")
        assert kwargs["json"]["label"] == "API"

    def test_update_element_drops_unset_fields(self, calls):
        mcp_server.diagram_update_element("n1", height=90)
        assert calls[0][2]["json"] == {"height": 90}

    def test_add_tendril_position_needs_both_coordinates(self, calls):
        mcp_server.diagram_add_tendril("n1", "incoming", x=5)
        assert "position" not in calls[0][2]["json"]

        mcp_server.diagram_add_tendril("n1", "incoming", x=5, y=30)
        assert calls[1][2]["json"]["position"] == {"x": 5, "y": 30}

    def test_export_returns_text(self, calls):
        assert mcp_server.diagram_export() == '{"elements": []}'

    def test_enter_and_leave(self, calls):
        mcp_server.diagram_enter("n1")
        mcp_server.diagram_leave()
        assert calls[0][2]["json"] == {"node_id": "n1"}
        assert calls[1][1] == "/navigation/leave"

    def test_select(self, calls):
        mcp_server.diagram_select("edge", "e1", multi_select=True)
        assert calls[0][2]["json"] == {"category": "edge", "id": "e1", "multi_select": True}


def test_unknown_method():
    with pytest.raises(ValueError):
        mcp_server.api_request("PUT", "/diagram")
