"""Prompt builders for each pipeline stage."""

from __future__ import annotations

from typing import TYPE_CHECKING

from task_pipeline.llm.provider import Message

if TYPE_CHECKING:
    from task_pipeline.models import TaskRecord

RAW_INPUT_MARKER = "Raw input:"
TASK_MARKER = "Task:"
URLS_MARKER = "URLs found:"

CATEGORY_CHOICES = (
    "Frontend",
    "Backend",
    "Infrastructure",
    "Design",
    "DevOps",
    "Data",
    "Security",
    "Testing",
    "Documentation",
    "Project Management",
)


def parse_prompt(raw_input: str) -> list[Message]:
    return [
        Message(
            role="user",
            content=(
                "You are a task analysis assistant. Parse the following raw project task "
                "input into structured tasks.\n"
                "Each distinct task should be extracted separately. If the input contains "
                "multiple tasks (separated by newlines, commas, or numbering), split them.\n\n"
                "For each task:\n"
                "- Create a concise, actionable title\n"
                "- Identify the technical domain (frontend, backend, infrastructure, design, "
                "devops, data, security, etc.)\n"
                "- Note any ambiguities or unclear aspects\n"
                "- Extract any URLs mentioned\n\n"
                f"{RAW_INPUT_MARKER}\n{raw_input}"
            ),
        )
    ]


def categorize_prompt(task: TaskRecord) -> list[Message]:
    return [
        Message(
            role="user",
            content=(
                "Categorize this project task into a technical category.\n\n"
                f"{TASK_MARKER} {task.title}\n"
                f"Description: {task.description}\n"
                f"Domain hint: {task.domain}\n\n"
                f"Categories to choose from: {', '.join(CATEGORY_CHOICES)}.\n"
                "Pick the most specific category and subcategory. Provide a confidence "
                "score and brief reasoning."
            ),
        )
    ]


def prioritize_prompt(task: TaskRecord) -> list[Message]:
    return [
        Message(
            role="user",
            content=(
                "Assess the priority of this project task. Consider factors like:\n"
                "- Business impact and urgency\n"
                "- Technical dependencies (does other work depend on this?)\n"
                "- Complexity and risk\n"
                "- Team velocity impact\n\n"
                f"{TASK_MARKER} {task.title}\n"
                f"Description: {task.description}\n"
                f"{_category_line(task)}\n"
                f"Ambiguities: {', '.join(task.ambiguities) or 'None'}\n\n"
                "Assign a priority level (critical/high/medium/low) and a numeric score (1-10)."
            ),
        )
    ]


def tool_pass_prompt(task: TaskRecord) -> list[Message]:
    return [
        Message(
            role="user",
            content=(
                "I'm analyzing this project task and want to gather additional context.\n\n"
                f"{TASK_MARKER} {task.title}\n"
                f"Description: {task.description}\n"
                f"{URLS_MARKER} {', '.join(task.urls)}\n\n"
                "Use the available tools to check any relevant URLs or gather additional "
                "context. Only use tools if they are relevant."
            ),
        )
    ]


def action_plan_prompt(task: TaskRecord, *, tool_context: str = "") -> list[Message]:
    priority_line = ""
    if task.priority is not None:
        priority_line = (
            f"Priority: {task.priority.priority} (score {task.priority.score:g}/10)"
        )
    extra = f"\nAdditional context from tools:\n{tool_context}\n" if tool_context else ""
    return [
        Message(
            role="user",
            content=(
                "Generate a practical action plan for this project task. Create an ordered "
                "list of concrete, actionable steps.\n\n"
                f"{TASK_MARKER} {task.title}\n"
                f"Description: {task.description}\n"
                f"{_category_line(task)}\n"
                f"{priority_line}\n"
                f"{extra}\n"
                "Create a clear, actionable plan with specific steps. Assess the overall "
                "complexity."
            ),
        )
    ]


def correction_prompt(schema_name: str, errors: list[dict]) -> str:
    return (
        f'Your previous response did not match the required JSON schema "{schema_name}".\n\n'
        f"Validation errors:\n{format_validation_errors(errors)}\n\n"
        "Please output a corrected version that strictly matches the schema."
    )


def format_validation_errors(errors: list[dict]) -> str:
    lines: list[str] = []
    for issue in errors:
        location = issue.get("loc") or ()
        path = f'"{".".join(str(part) for part in location)}"' if location else "(root)"
        lines.append(f"- Field {path}: {issue.get('msg', 'invalid value')}")
    return "\n".join(lines)


def _category_line(task: TaskRecord) -> str:
    if task.category is None:
        return ""
    return f"Category: {task.category.category} / {task.category.subcategory}"
