"""Tests for the command-line client."""

import json

import pytest

from tendril_backend import cli


@pytest.fixture
def calls(monkeypatch):
    """Record API calls instead of sending them."""
    recorded = []

    def fake_request(method, endpoint, data=None, params=None):
        recorded.append((method, endpoint, data, params))
        return {"success": True}

    monkeypatch.setattr(cli, "_api_request", fake_request)
    return recorded


def _run(argv):
    with pytest.raises(SystemExit) as exc_info:
        cli.main(argv)
    return exc_info.value.code


class TestCommands:
    def test_add_node(self, calls, capsys):
        assert _run(["add-node", "--label", "API", "--x", "10", "--shape", "pill"]) == 0
        method, endpoint, data, _ = calls[0]
        assert (method, endpoint) == ("POST", "/nodes")
        assert data["label"] == "API"
        assert data["x"] == 10.0
        assert data["shape"] == "pill"
        assert json.loads(capsys.readouterr().out) == {"success": True}

    def test_add_tendril_with_position(self, calls):
        _run(["add-tendril", "--element-id", "n1", "--type", "incoming", "--position", "4,30"])
        _, endpoint, data, _ = calls[0]
        assert endpoint == "/elements/n1/tendrils"
        assert data["position"] == {"x": 4.0, "y": 30.0}
        assert data["target"] is None

    def test_update_element_sends_only_given_fields(self, calls):
        _run(["update-element", "--element-id", "n1", "--width", "200"])
        assert calls[0][2] == {"width": 200.0}

    def test_update_tendril_exposed_flag(self, calls):
        _run(["update-tendril", "--element-id", "n1", "--tendril-id", "t1", "--exposed", "true"])
        assert calls[0][2] == {"exposed": True}

    def test_add_edge(self, calls):
        _run([
            "add-edge", "--from-node", "n1", "--from-tendril", "t1",
            "--to-node", "n2", "--to-tendril", "n3-t9",
        ])
        data = calls[0][2]
        assert data["to_tendril_id"] == "n3-t9"

    def test_navigation(self, calls):
        _run(["enter", "--node-id", "n1"])
        _run(["leave"])
        assert [c[1] for c in calls] == ["/navigation/enter", "/navigation/leave"]

    def test_new_passes_name_as_query(self, calls):
        _run(["new", "--name", "Blank"])
        assert calls[0][3] == {"name": "Blank"}

    def test_bad_point(self, calls, capsys):
        assert _run(["add-tendril", "--element-id", "n1", "--type", "incoming", "--position", "oops"]) == 1
        assert json.loads(capsys.readouterr().out)["status"] == "error"
        assert calls == []


def test_export_to_file(monkeypatch, tmp_path):
    monkeypatch.setattr(cli, "_api_request", lambda *args, **kwargs: '{"elements": []}')
    target = tmp_path / "out.json"
    assert _run(["export", "--output", str(target)]) == 0
    assert target.read_text(encoding="utf-8") == '{"elements": []}'


def test_import_from_file(calls, tmp_path):
    source = tmp_path / "in.json"
    source.write_text('{"name": "X"}', encoding="utf-8")
    _run(["import", "--input", str(source)])
    assert calls[0][:3] == ("POST", "/diagram/import", {"text": '{"name": "X"}'})
