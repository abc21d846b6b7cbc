"""
Pipeline configuration loading.

Reads ``swarm.config.yaml`` (or ``.yml``/``.json``) from the repository
root, falling back to the bundled default, validates it and converts it
to the frozen ``PipelineConfig`` dataclasses.
"""

import dataclasses
import json
import logging
import os
from collections.abc import Mapping
from importlib.resources import files
from pathlib import Path
from typing import Any

import jsonschema
import yaml

from swarmpipe.domain.config import (
    DEFAULT_PRIMARY_MODEL,
    DEFAULT_REVIEW_MODEL,
    CrossModelReviewPhaseConfig,
    DecomposePhaseConfig,
    DesignPhaseConfig,
    ImplementPhaseConfig,
    PhaseCondition,
    PhaseConfig,
    PhaseKind,
    PipelineConfig,
    QaStepConfig,
    ReviewStepConfig,
    SpecPhaseConfig,
    VerifyConfig,
    VerifyPhaseConfig,
)
from swarmpipe.domain.exceptions import PipelineConfigError
from swarmpipe.schemas import validate_pipeline

logger = logging.getLogger(__name__)

CONFIG_FILE_NAMES = ("swarm.config.yaml", "swarm.config.yml", "swarm.config.json")
DEFAULT_CONFIG_RESOURCE = "swarm.config.yaml"

_VALID_PHASES = [kind.value for kind in PhaseKind]


# =============================================================================
# STRUCTURE CHECKS
# =============================================================================


def _format_path(path: Any) -> str:
    out = ""
    for part in path:
        out += f"[{part}]" if isinstance(part, int) else (f".{part}" if out else str(part))
    return out or "(root)"


def _check_shape(raw: Any) -> dict[str, Any]:
    """Checks whose messages callers and users rely on, run before the schema."""
    if not isinstance(raw, dict):
        raise PipelineConfigError("Config must be a YAML object")
    agents = raw.get("agents")
    if not isinstance(agents, dict):
        raise PipelineConfigError(
            '"agents" must be an object mapping agent names to instruction sources'
        )
    for name, source in agents.items():
        if not isinstance(source, str) or not source:
            raise PipelineConfigError(
                f'Agent "{name}" must have a non-empty string source '
                '(e.g. "builtin:pm" or a file path)'
            )
    pipeline = raw.get("pipeline")
    if not isinstance(pipeline, list) or not pipeline:
        raise PipelineConfigError('"pipeline" must be a non-empty array of phase definitions')
    for i, entry in enumerate(pipeline):
        if not isinstance(entry, dict):
            raise PipelineConfigError(f"pipeline[{i}] must be an object")
        kind = entry.get("phase")
        if kind not in _VALID_PHASES:
            raise PipelineConfigError(
                f'Unknown phase type "{kind}" in pipeline[{i}]. '
                f"Valid: {', '.join(_VALID_PHASES)}"
            )
    return raw


# =============================================================================
# CONVERSION
# =============================================================================


def _review(raw: dict[str, Any]) -> ReviewStepConfig:
    return ReviewStepConfig(
        agent=raw["agent"],
        max_iterations=raw["maxIterations"],
        approval_keyword=raw["approvalKeyword"],
        clarification_keyword=raw.get("clarificationKeyword"),
        clarification_agent=raw.get("clarificationAgent"),
    )


def _reviews(raw: dict[str, Any]) -> tuple[ReviewStepConfig, ...]:
    return tuple(_review(r) for r in raw.get("reviews", []))


def _condition(raw: dict[str, Any]) -> PhaseCondition | None:
    value = raw.get("condition")
    return PhaseCondition(value) if value is not None else None


def _phase(raw: dict[str, Any]) -> PhaseConfig:
    kind = PhaseKind(raw["phase"])
    if kind is PhaseKind.SPEC:
        return SpecPhaseConfig(
            agent=raw["agent"], reviews=_reviews(raw), condition=_condition(raw)
        )
    if kind is PhaseKind.DECOMPOSE:
        return DecomposePhaseConfig(
            agent=raw["agent"], frontend_marker=raw.get("frontendMarker", "[FRONTEND]")
        )
    if kind is PhaseKind.DESIGN:
        return DesignPhaseConfig(
            agent=raw["agent"],
            reviews=_reviews(raw),
            condition=_condition(raw),
            clarification_agent=raw.get("clarificationAgent"),
        )
    if kind is PhaseKind.IMPLEMENT:
        qa = raw.get("qa")
        return ImplementPhaseConfig(
            agent=raw["agent"],
            parallel=raw.get("parallel", True),
            reviews=_reviews(raw),
            qa=(
                QaStepConfig(
                    agent=qa["agent"],
                    max_iterations=qa["maxIterations"],
                    approval_keyword=qa["approvalKeyword"],
                )
                if qa is not None
                else None
            ),
            clarification_agent=raw.get("clarificationAgent"),
            clarification_keyword=raw.get("clarificationKeyword"),
        )
    if kind is PhaseKind.CROSS_MODEL_REVIEW:
        return CrossModelReviewPhaseConfig(
            agent=raw["agent"],
            fix_agent=raw["fixAgent"],
            max_iterations=raw["maxIterations"],
            approval_keyword=raw["approvalKeyword"],
            condition=_condition(raw),
        )
    return VerifyPhaseConfig(fix_agent=raw["fixAgent"], max_iterations=raw["maxIterations"])


def _referenced_agents(phase: PhaseConfig) -> list[tuple[str, str]]:
    """(agent, context) pairs for every agent a phase refers to."""
    ctx = f'phase "{phase.kind.value}"'
    refs: list[tuple[str, str]] = []
    if isinstance(phase, VerifyPhaseConfig):
        return [(phase.fix_agent, f"{ctx} fixAgent")]
    refs.append((phase.agent, ctx))
    if isinstance(phase, CrossModelReviewPhaseConfig):
        refs.append((phase.fix_agent, f"{ctx} fixAgent"))
    if isinstance(phase, (DesignPhaseConfig, ImplementPhaseConfig)) and phase.clarification_agent:
        refs.append((phase.clarification_agent, f"{ctx} clarification"))
    if isinstance(phase, ImplementPhaseConfig) and phase.qa:
        refs.append((phase.qa.agent, f"{ctx} qa"))
    for review in getattr(phase, "reviews", ()):
        refs.append((review.agent, f"{ctx} review"))
        if review.clarification_agent:
            refs.append((review.clarification_agent, f"{ctx} review clarification"))
    return refs


def parse_pipeline_config(raw: Any) -> PipelineConfig:
    """
    Validate a raw (camelCase) config mapping and convert it.

    Args:
        raw: Parsed YAML/JSON document

    Returns:
        The pipeline configuration

    Raises:
        PipelineConfigError: If the document is malformed
    """
    data = _check_shape(raw)
    try:
        validate_pipeline(data)
    except jsonschema.ValidationError as e:
        raise PipelineConfigError(f"{_format_path(e.absolute_path)}: {e.message}") from e

    verify_raw = data.get("verify")
    config = PipelineConfig(
        phases=tuple(_phase(p) for p in data["pipeline"]),
        agents=dict(data["agents"]),
        primary_model=data.get("primaryModel") or DEFAULT_PRIMARY_MODEL,
        review_model=data.get("reviewModel") or DEFAULT_REVIEW_MODEL,
        verify=(
            VerifyConfig(
                build=verify_raw.get("build"),
                test=verify_raw.get("test"),
                lint=verify_raw.get("lint"),
            )
            if verify_raw is not None
            else None
        ),
    )

    for phase in config.phases:
        for agent, context in _referenced_agents(phase):
            if agent not in config.agents:
                raise PipelineConfigError(
                    f'Agent "{agent}" referenced in {context} is not defined in "agents"'
                )
    return config


def _read_document(text: str, source: str) -> Any:
    try:
        if source.endswith(".json"):
            return json.loads(text)
        return yaml.safe_load(text)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise PipelineConfigError(f"Failed to parse {source}: {e}") from e


def load_pipeline_config(
    repo_root: Path, env: Mapping[str, str] | None = None
) -> PipelineConfig:
    """
    Load the pipeline config from the repo root, falling back to the bundled default.

    ``PRIMARY_MODEL`` and ``REVIEW_MODEL`` environment variables override
    the models declared in the file.

    Args:
        repo_root: Repository root
        env: Environment mapping (defaults to ``os.environ``)

    Returns:
        The pipeline configuration
    """
    env = os.environ if env is None else env
    for name in CONFIG_FILE_NAMES:
        path = Path(repo_root) / name
        if path.exists():
            source = str(path)
            text = path.read_text(encoding="utf-8")
            break
    else:
        source = f"bundled {DEFAULT_CONFIG_RESOURCE}"
        text = files("swarmpipe.defaults").joinpath(DEFAULT_CONFIG_RESOURCE).read_text()

    logger.debug("Loading pipeline config from %s", source)
    config = parse_pipeline_config(_read_document(text, source))

    overrides: dict[str, str] = {}
    if env.get("PRIMARY_MODEL"):
        overrides["primary_model"] = env["PRIMARY_MODEL"]
    if env.get("REVIEW_MODEL"):
        overrides["review_model"] = env["REVIEW_MODEL"]
    return dataclasses.replace(config, **overrides) if overrides else config
