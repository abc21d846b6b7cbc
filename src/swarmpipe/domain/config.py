"""
Declarative pipeline configuration.

Defines the shape of ``swarm.config.yaml``: which agents exist, how review
steps are wired and in what order phases execute. Also holds the per-run
settings and the content-addressed pipeline reference used to detect
config drift between a run and its resume.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

DEFAULT_PRIMARY_MODEL = "gpt-4.1"
DEFAULT_REVIEW_MODEL = "o4-mini"
BUILTIN_AGENT_PREFIX = "builtin:"


class PhaseKind(str, Enum):
    """Kinds of phase a pipeline can contain."""

    SPEC = "spec"
    DECOMPOSE = "decompose"
    DESIGN = "design"
    IMPLEMENT = "implement"
    CROSS_MODEL_REVIEW = "cross-model-review"
    VERIFY = "verify"


class PhaseCondition(str, Enum):
    """Execution conditions a phase may declare."""

    NO_PLAN_PROVIDED = "noPlanProvided"
    HAS_FRONTEND_TASKS = "hasFrontendTasks"
    DIFFERENT_REVIEW_MODEL = "differentReviewModel"


# =============================================================================
# REVIEW STEPS
# =============================================================================


@dataclass(frozen=True)
class ReviewStepConfig:
    """A reviewer that iterates with the author until approval."""

    agent: str
    max_iterations: int
    approval_keyword: str
    clarification_keyword: str | None = None
    clarification_agent: str | None = None


@dataclass(frozen=True)
class QaStepConfig:
    """QA loop run after code review inside an implement stream."""

    agent: str
    max_iterations: int
    approval_keyword: str


# =============================================================================
# PHASES
# =============================================================================


@dataclass(frozen=True)
class SpecPhaseConfig:
    """Specification drafting with reviews."""

    agent: str
    reviews: tuple[ReviewStepConfig, ...] = ()
    condition: PhaseCondition | None = None
    kind: PhaseKind = field(default=PhaseKind.SPEC, init=False)


@dataclass(frozen=True)
class DecomposePhaseConfig:
    """Task decomposition into a dependency-annotated task list."""

    agent: str
    frontend_marker: str = "[FRONTEND]"
    kind: PhaseKind = field(default=PhaseKind.DECOMPOSE, init=False)


@dataclass(frozen=True)
class DesignPhaseConfig:
    """UI/UX design, usually conditional on frontend tasks."""

    agent: str
    reviews: tuple[ReviewStepConfig, ...] = ()
    condition: PhaseCondition | None = None
    clarification_agent: str | None = None
    kind: PhaseKind = field(default=PhaseKind.DESIGN, init=False)


@dataclass(frozen=True)
class ImplementPhaseConfig:
    """Per-task implementation streams, optionally parallel."""

    agent: str
    parallel: bool = True
    reviews: tuple[ReviewStepConfig, ...] = ()
    qa: QaStepConfig | None = None
    clarification_agent: str | None = None
    clarification_keyword: str | None = None
    kind: PhaseKind = field(default=PhaseKind.IMPLEMENT, init=False)


@dataclass(frozen=True)
class CrossModelReviewPhaseConfig:
    """Independent review of every stream result by the review model."""

    agent: str
    fix_agent: str
    max_iterations: int
    approval_keyword: str
    condition: PhaseCondition | None = None
    kind: PhaseKind = field(default=PhaseKind.CROSS_MODEL_REVIEW, init=False)


@dataclass(frozen=True)
class VerifyPhaseConfig:
    """Build/test/lint loop with a fix agent."""

    fix_agent: str
    max_iterations: int
    kind: PhaseKind = field(default=PhaseKind.VERIFY, init=False)


PhaseConfig = (
    SpecPhaseConfig
    | DecomposePhaseConfig
    | DesignPhaseConfig
    | ImplementPhaseConfig
    | CrossModelReviewPhaseConfig
    | VerifyPhaseConfig
)


@dataclass(frozen=True)
class VerifyConfig:
    """Verification shell commands. ``None`` means not configured."""

    build: str | None = None
    test: str | None = None
    lint: str | None = None

    def commands(self) -> list[tuple[str, str]]:
        """Return the configured (name, command) pairs in build/test/lint order."""
        pairs = [("build", self.build), ("test", self.test), ("lint", self.lint)]
        return [(name, cmd) for name, cmd in pairs if cmd]

    def is_empty(self) -> bool:
        return not self.commands()


def merge_verify_configs(*layers: VerifyConfig | None) -> VerifyConfig:
    """Merge command layers per command; earlier layers win."""
    present = [layer for layer in layers if layer is not None]

    def pick(name: str) -> str | None:
        for layer in present:
            value = getattr(layer, name)
            if value:
                return value
        return None

    return VerifyConfig(build=pick("build"), test=pick("test"), lint=pick("lint"))


@dataclass(frozen=True)
class PipelineConfig:
    """Root configuration loaded from ``swarm.config.yaml``."""

    phases: tuple[PhaseConfig, ...]
    agents: dict[str, str] = field(default_factory=dict)
    primary_model: str = DEFAULT_PRIMARY_MODEL
    review_model: str = DEFAULT_REVIEW_MODEL
    verify: VerifyConfig | None = None

    def phase_keys(self) -> list[str]:
        """Stable keys for every configured phase, in order."""
        return [phase_key(phase, i) for i, phase in enumerate(self.phases)]

    def to_dict(self) -> dict[str, Any]:
        """JSON-compatible representation used for fingerprinting."""
        return {
            "primary_model": self.primary_model,
            "review_model": self.review_model,
            "agents": dict(sorted(self.agents.items())),
            "phases": [_phase_to_dict(p) for p in self.phases],
            "verify": asdict(self.verify) if self.verify else None,
        }


def phase_key(phase: PhaseConfig, index: int) -> str:
    """Derive the checkpoint key ``<phaseKind>-<positionIndex>``."""
    return f"{phase.kind.value}-{index}"


def _phase_to_dict(phase: PhaseConfig) -> dict[str, Any]:
    data = asdict(phase)
    data["kind"] = phase.kind.value
    condition = data.get("condition")
    if isinstance(condition, PhaseCondition):
        data["condition"] = condition.value
    return data


def compute_pipeline_ref(config: PipelineConfig) -> str:
    """Compute a content-addressed hash of the pipeline config.

    Canonical JSON (sorted keys, compact separators) hashed with SHA-256.
    Two configs with the same phases, agents and models produce the same
    reference, so phase keys stored in a checkpoint keep their meaning.

    Args:
        config: The pipeline configuration.

    Returns:
        Hex-encoded SHA-256 hash string.
    """
    canonical = json.dumps(config.to_dict(), sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


# =============================================================================
# RUN SETTINGS
# =============================================================================


@dataclass(frozen=True)
class RunSettings:
    """Per-invocation settings (CLI flags and environment)."""

    repo_root: Path
    run_id: str
    issue_body: str = ""
    resume: bool = False
    review_run_id: str | None = None
    plan_provided: bool = False
    verbose: bool = False
    swarm_dir: str = ".swarm"
    agents_dir: str = ".github/agents"
    doc_dir: str = "doc"
    summary_file_name: str = "swarm-summary.md"
    session_timeout_s: float = 1800.0
    max_retries: int = 2
    max_auto_resume: int = 3
    verify_timeout_s: float = 600.0
    verify_overrides: VerifyConfig | None = None

    @property
    def swarm_root(self) -> Path:
        """Root ``.swarm`` directory."""
        return self.repo_root / self.swarm_dir

    @property
    def run_dir(self) -> Path:
        """Per-run directory: ``.swarm/runs/<run_id>/``."""
        return self.swarm_root / "runs" / self.run_id

    @property
    def roles_dir(self) -> Path:
        """Role summaries inside a run."""
        return self.run_dir / "roles"

    @property
    def latest_pointer_path(self) -> Path:
        """Pointer file naming the latest run id."""
        return self.swarm_root / "latest"

    @property
    def analysis_path(self) -> Path:
        """Optional repository analysis used as context for every phase."""
        return self.swarm_root / "analysis" / "repo-analysis.md"

    @property
    def plans_dir(self) -> Path:
        """Plans written by plan mode."""
        return self.swarm_root / "plans"
