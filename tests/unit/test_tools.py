import json
from urllib import error

from pydantic import BaseModel

import task_pipeline.tools.url_health_check as url_module
from task_pipeline.tools import build_tool_registry
from task_pipeline.tools.registry import ToolRegistry, ToolSpec


class EchoInput(BaseModel):
    text: str


def _echo_registry() -> ToolRegistry:
    def _echo(payload: EchoInput) -> str:
        if payload.text == "boom":
            raise RuntimeError("echo exploded")
        return payload.text.upper()

    return ToolRegistry().register(
        ToolSpec(name="echo", description="Echo text", input_model=EchoInput, fn=_echo)
    )


def test_registry_executes_and_encodes_failures_as_text() -> None:
    registry = _echo_registry()

    assert registry.execute("echo", {"text": "hi"}) == "HI"
    assert registry.execute("missing", {}) == "Unknown tool: missing"
    assert registry.execute("echo", {"text": "boom"}) == "Tool error: echo exploded"
    assert registry.execute("echo", {}).startswith("Tool error: invalid input for echo")


def test_registry_definitions_carry_json_schema() -> None:
    definitions = _echo_registry().definitions()
    assert len(definitions) == 1
    assert definitions[0].name == "echo"
    assert definitions[0].input_schema["properties"]["text"]["type"] == "string"
    assert "$schema" not in definitions[0].input_schema


def test_build_tool_registry_respects_enabled_flag() -> None:
    assert build_tool_registry(enabled=True).names() == ["url_health_check"]
    assert len(build_tool_registry(enabled=False)) == 0


class _FakeResponse:
    def __init__(self, status: int, reason: str) -> None:
        self.status = status
        self.reason = reason

    def __enter__(self):
        return self

    def __exit__(self, *exc) -> None:
        return None


def test_url_health_check_reports_status(monkeypatch) -> None:
    captured = {}

    def fake_urlopen(req, timeout):
        captured["method"] = req.get_method()
        captured["timeout"] = timeout
        return _FakeResponse(200, "OK")

    monkeypatch.setattr(url_module.request, "urlopen", fake_urlopen)

    result = json.loads(url_module.check_url("https://example.com", timeout_s=2.5))

    assert result == {"url": "https://example.com", "status": 200, "ok": True, "status_text": "OK"}
    assert captured == {"method": "HEAD", "timeout": 2.5}


def test_url_health_check_http_error_is_not_ok(monkeypatch) -> None:
    def fake_urlopen(req, timeout):
        raise error.HTTPError(req.full_url, 404, "Not Found", hdrs=None, fp=None)

    monkeypatch.setattr(url_module.request, "urlopen", fake_urlopen)

    result = json.loads(url_module.check_url("https://example.com/missing", timeout_s=1))
    assert result["status"] == 404
    assert result["ok"] is False


def test_url_health_check_network_error_is_encoded(monkeypatch) -> None:
    def fake_urlopen(req, timeout):
        raise error.URLError("name resolution failed")

    monkeypatch.setattr(url_module.request, "urlopen", fake_urlopen)

    registry = ToolRegistry().register(url_module.build_url_health_check_tool(timeout_s=1))
    result = json.loads(registry.execute("url_health_check", {"url": "https://nope.invalid"}))
    assert result == {"url": "https://nope.invalid", "ok": False, "error": "name resolution failed"}


def test_url_health_check_rejects_non_http_schemes(monkeypatch, tmp_path) -> None:
    def fail_urlopen(req, timeout):
        raise AssertionError("urlopen must not be called")

    monkeypatch.setattr(url_module.request, "urlopen", fail_urlopen)
    existing = tmp_path / "present.txt"
    existing.write_text("x")

    registry = ToolRegistry().register(url_module.build_url_health_check_tool(timeout_s=1))
    for url in (existing.as_uri(), (tmp_path / "absent").as_uri(), "ftp://example.com/a", "data:,hi"):
        result = json.loads(registry.execute("url_health_check", {"url": url}))
        assert result == {"url": url, "ok": False, "error": "unsupported scheme"}
