from task_pipeline.llm.deterministic import DeterministicProvider, split_raw_tasks
from task_pipeline.llm.prompts import (
    action_plan_prompt,
    categorize_prompt,
    parse_prompt,
    prioritize_prompt,
    tool_pass_prompt,
)
from task_pipeline.llm.provider import ToolDefinition
from task_pipeline.llm.schemas import (
    ActionPlanOutput,
    CategorizedTask,
    ParsedTaskList,
    PrioritizedTask,
)
from task_pipeline.models import Categorization, TaskRecord


def test_split_raw_tasks_handles_numbering_bullets_and_semicolons() -> None:
    raw = "1. Fix login\n- Deploy API; write docs\n\n  * Review PR  "
    assert split_raw_tasks(raw) == ["Fix login", "Deploy API", "write docs", "Review PR"]


def test_parse_extracts_urls_domain_and_ambiguities() -> None:
    provider = DeterministicProvider()
    response = provider.request_structured(
        parse_prompt("check the deploy pipeline at https://ci.example.com/builds\nfix css"),
        ParsedTaskList,
        "parsed_task_list",
    )

    first, second = response.parsed.tasks
    assert first.title == "Check the deploy pipeline at"
    assert first.urls == ["https://ci.example.com/builds"]
    assert first.domain == "devops"
    assert second.title == "Fix css"
    assert second.domain == "frontend"
    assert second.ambiguities == ["Task description is very brief"]


def test_categorize_uses_keyword_rules_and_fallback() -> None:
    provider = DeterministicProvider()

    matched = provider.request_structured(
        categorize_prompt(TaskRecord(title="Migrate the postgres schema")),
        CategorizedTask,
        "categorized_task",
    ).parsed
    assert matched.category == "Data"
    assert matched.subcategory == "Database"

    fallback = provider.request_structured(
        categorize_prompt(TaskRecord(title="Plan the quarterly offsite")),
        CategorizedTask,
        "categorized_task",
    ).parsed
    assert fallback.category == "Project Management"
    assert fallback.confidence == 0.4


def test_keywords_match_word_starts_only() -> None:
    provider = DeterministicProvider()
    # "build" contains "ui" but is not a UI task
    parsed = provider.request_structured(
        categorize_prompt(TaskRecord(title="Speed up the nightly build")),
        CategorizedTask,
        "categorized_task",
    ).parsed
    assert parsed.category != "Frontend"


def test_prioritize_levels() -> None:
    provider = DeterministicProvider()

    def level(title: str) -> str:
        return provider.request_structured(
            prioritize_prompt(TaskRecord(title=title)), PrioritizedTask, "prioritized_task"
        ).parsed.priority

    assert level("Production down after release") == "critical"
    assert level("Urgent fix for checkout") == "high"
    assert level("Improve login copy") == "medium"
    assert level("Tidy the office plants") == "low"


def test_plan_adds_review_step_when_tool_context_present() -> None:
    provider = DeterministicProvider()
    task = TaskRecord(title="Update status page")
    task.category = Categorization(
        category="Frontend", subcategory="Web UI", confidence=0.7, reasoning="x"
    )

    plain = provider.request_structured(
        action_plan_prompt(task), ActionPlanOutput, "action_plan"
    ).parsed
    with_tools = provider.request_structured(
        action_plan_prompt(task, tool_context='url_health_check: {"ok": true}'),
        ActionPlanOutput,
        "action_plan",
    ).parsed

    assert len(plain.steps) == 4
    assert len(with_tools.steps) == 5
    assert plain.complexity == "moderate"
    assert [step.order for step in with_tools.steps] == [1, 2, 3, 4, 5]


def test_tool_proposals_cover_each_url() -> None:
    provider = DeterministicProvider()
    task = TaskRecord(title="Audit links", urls=["https://a.example", "https://b.example/x"])
    tool = ToolDefinition(name="url_health_check", description="d", input_schema={})

    response = provider.request_with_tools(tool_pass_prompt(task), [tool])
    assert [call.input["url"] for call in response.tool_calls] == [
        "https://a.example",
        "https://b.example/x",
    ]
    assert provider.request_with_tools(tool_pass_prompt(task), []).tool_calls == []
