"""LangGraph assembly of a stage sequence: one node per stage, END on halt."""

from __future__ import annotations

from typing import Callable, Sequence, TypedDict

from langgraph.graph import END, StateGraph

from task_pipeline.pipeline.stage import Stage


class PipelineGraphState(TypedDict, total=False):
    run_id: str
    halted: bool
    failed_stage: str | None
    stage_status: dict[str, str]
    summaries: dict[str, str]


StageNode = Callable[[Stage, PipelineGraphState], PipelineGraphState]


def initial_graph_state(run_id: str, stages: Sequence[Stage]) -> PipelineGraphState:
    return {
        "run_id": run_id,
        "halted": False,
        "failed_stage": None,
        "stage_status": {stage.name: "pending" for stage in stages},
        "summaries": {},
    }


def build_stage_graph(stages: Sequence[Stage], run_stage: StageNode):
    if not stages:
        raise ValueError("At least one stage is required to build a pipeline graph")

    def _route(state: PipelineGraphState) -> str:
        return "halt" if state.get("halted", False) else "next"

    def _node(stage: Stage) -> Callable[[PipelineGraphState], PipelineGraphState]:
        def _run(state: PipelineGraphState) -> PipelineGraphState:
            return run_stage(stage, state)

        return _run

    graph = StateGraph(PipelineGraphState)
    names = [stage.name for stage in stages]
    for stage in stages:
        graph.add_node(stage.name, _node(stage))

    graph.set_entry_point(names[0])
    for current, following in zip(names, [*names[1:], END]):
        graph.add_conditional_edges(current, _route, {"halt": END, "next": following})

    return graph.compile()
