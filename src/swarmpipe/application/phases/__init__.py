"""Phase executors, one per phase kind."""

from swarmpipe.application.phases.base import PhaseExecutor, PhaseServices, fan_out
from swarmpipe.application.phases.cross_review import CrossModelReviewPhase
from swarmpipe.application.phases.decompose import DecomposePhase
from swarmpipe.application.phases.design import DesignPhase
from swarmpipe.application.phases.implement import ImplementPhase
from swarmpipe.application.phases.spec import SpecPhase
from swarmpipe.application.phases.verify import VerifyPhase
from swarmpipe.domain.config import PhaseKind

PHASE_EXECUTORS: dict[PhaseKind, type[PhaseExecutor]] = {
    PhaseKind.SPEC: SpecPhase,
    PhaseKind.DECOMPOSE: DecomposePhase,
    PhaseKind.DESIGN: DesignPhase,
    PhaseKind.IMPLEMENT: ImplementPhase,
    PhaseKind.CROSS_MODEL_REVIEW: CrossModelReviewPhase,
    PhaseKind.VERIFY: VerifyPhase,
}

__all__ = [
    "PHASE_EXECUTORS",
    "PhaseExecutor",
    "PhaseServices",
    "fan_out",
    "SpecPhase",
    "DecomposePhase",
    "DesignPhase",
    "ImplementPhase",
    "CrossModelReviewPhase",
    "VerifyPhase",
]
