"""
Application layer for the pipeline engine.

Contains the pipeline and mode engines, phase executors, review loop,
agent-call retry policy and auto-resume supervision.
"""

from swarmpipe.application.agent_caller import AgentCaller
from swarmpipe.application.analysis import RepoAnalysisEngine
from swarmpipe.application.engine import PipelineEngine, build_run_summary
from swarmpipe.application.event_emitter import PipelineEventEmitter
from swarmpipe.application.mode_engine import ModeEngine
from swarmpipe.application.planning import PlanningEngine, build_plan
from swarmpipe.application.progress_tracker import ProgressTracker
from swarmpipe.application.review_loop import ReviewLoop, RevisionGuard
from swarmpipe.application.run_state import RunState
from swarmpipe.application.supervisor import AutoResumeRunner

__all__ = [
    "PipelineEngine",
    "ModeEngine",
    "RepoAnalysisEngine",
    "PlanningEngine",
    "build_plan",
    "AutoResumeRunner",
    "AgentCaller",
    "ReviewLoop",
    "RevisionGuard",
    "RunState",
    "ProgressTracker",
    "PipelineEventEmitter",
    "build_run_summary",
]
