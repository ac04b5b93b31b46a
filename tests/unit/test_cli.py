import json

import task_pipeline.cli as cli
from task_pipeline.config.settings import Settings


def _settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        store_backend="sqlite",
        sqlite_path=str(tmp_path / "cli.db"),
        llm_provider="deterministic",
        tools_enabled=False,
    )


def test_analyze_then_list(monkeypatch, tmp_path, capsys) -> None:
    settings = _settings(tmp_path)
    monkeypatch.setattr(cli, "get_settings", lambda: settings)

    assert cli.main(["analyze", "--json", "Deploy the API", "Write the README"]) == 0
    lines = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
    assert lines[0]["stage_name"] == "parse"
    assert lines[-1]["stage_name"] == "action-plan"
    assert lines[-1]["status"] == "completed"

    assert cli.main(["list", "--page-size", "5"]) == 0
    page = json.loads(capsys.readouterr().out)
    assert page["total"] == 2
    assert page["page_size"] == 5
    assert {item["pipeline_stage"] for item in page["items"]} == {"completed"}


def test_analyze_exits_non_zero_when_pipeline_halts(monkeypatch, tmp_path, capsys) -> None:
    settings = _settings(tmp_path)
    monkeypatch.setattr(cli, "get_settings", lambda: settings)

    def broken_pipeline(provider, registry, *, max_retries):
        from task_pipeline.pipeline.machine import StateMachine

        class AlwaysFails:
            name = "parse"
            label = "Parsing tasks"
            max_retries = 0

            def execute(self, state, emit):
                raise RuntimeError("no provider")

        return StateMachine([AlwaysFails()])

    monkeypatch.setattr(cli, "build_task_pipeline", broken_pipeline)

    assert cli.main(["analyze", "anything"]) == 1
    out = capsys.readouterr().out
    assert "Parsing tasks failed: no provider" in out
