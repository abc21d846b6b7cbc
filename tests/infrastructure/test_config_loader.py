"""Tests for pipeline config loading and validation."""

import json

import pytest

from swarmpipe.domain.config import (
    CrossModelReviewPhaseConfig,
    DecomposePhaseConfig,
    ImplementPhaseConfig,
    PhaseCondition,
    PhaseKind,
    SpecPhaseConfig,
    VerifyConfig,
)
from swarmpipe.domain.exceptions import PipelineConfigError
from swarmpipe.infrastructure.config_loader import load_pipeline_config, parse_pipeline_config


def minimal(**overrides):
    raw = {
        "agents": {"pm": "builtin:pm", "engineer": "agents/engineer.md"},
        "pipeline": [
            {"phase": "decompose", "agent": "pm"},
            {"phase": "implement", "agent": "engineer"},
        ],
    }
    raw.update(overrides)
    return raw


class TestParsePipelineConfig:
    """Tests for parse_pipeline_config."""

    def test_minimal_config(self) -> None:
        config = parse_pipeline_config(minimal())

        assert [p.kind for p in config.phases] == [PhaseKind.DECOMPOSE, PhaseKind.IMPLEMENT]
        assert config.phases[0] == DecomposePhaseConfig(agent="pm")
        assert config.phases[1] == ImplementPhaseConfig(agent="engineer")
        assert config.primary_model == "gpt-4.1"
        assert config.review_model == "o4-mini"
        assert config.verify is None

    def test_full_phase_options(self) -> None:
        raw = minimal(
            agents={"pm": "builtin:pm", "rev": "builtin:rev", "eng": "builtin:eng"},
            pipeline=[
                {
                    "phase": "spec",
                    "agent": "pm",
                    "condition": "noPlanProvided",
                    "reviews": [
                        {
                            "agent": "rev",
                            "maxIterations": 2,
                            "approvalKeyword": "APPROVED",
                            "clarificationKeyword": "QUESTION",
                            "clarificationAgent": "pm",
                        }
                    ],
                },
                {
                    "phase": "cross-model-review",
                    "agent": "rev",
                    "fixAgent": "eng",
                    "maxIterations": 2,
                    "approvalKeyword": "APPROVED",
                    "condition": "differentReviewModel",
                },
            ],
            primaryModel="model-a",
            reviewModel="model-b",
            verify={"test": "pytest"},
        )

        config = parse_pipeline_config(raw)

        spec, cross = config.phases
        assert isinstance(spec, SpecPhaseConfig)
        assert spec.condition is PhaseCondition.NO_PLAN_PROVIDED
        assert spec.reviews[0].clarification_agent == "pm"
        assert isinstance(cross, CrossModelReviewPhaseConfig)
        assert cross.fix_agent == "eng"
        assert config.verify == VerifyConfig(test="pytest")
        assert (config.primary_model, config.review_model) == ("model-a", "model-b")

    def test_unknown_phase(self) -> None:
        message = 'Unknown phase type "deploy" in pipeline\\[1\\]'
        with pytest.raises(PipelineConfigError, match=message):
            parse_pipeline_config(
                minimal(pipeline=[{"phase": "decompose", "agent": "pm"}, {"phase": "deploy"}])
            )

    def test_undefined_agent(self) -> None:
        raw = minimal(
            pipeline=[
                {
                    "phase": "implement",
                    "agent": "engineer",
                    "qa": {"agent": "tester", "maxIterations": 2, "approvalKeyword": "OK"},
                }
            ]
        )
        message = 'Agent "tester" referenced in phase "implement" qa'
        with pytest.raises(PipelineConfigError, match=message):
            parse_pipeline_config(raw)

    def test_empty_pipeline(self) -> None:
        with pytest.raises(PipelineConfigError, match="non-empty array"):
            parse_pipeline_config(minimal(pipeline=[]))

    def test_agents_must_be_mapping(self) -> None:
        with pytest.raises(PipelineConfigError, match='"agents" must be an object'):
            parse_pipeline_config(minimal(agents=["pm"]))

    def test_schema_violation_names_location(self) -> None:
        raw = minimal(
            pipeline=[
                {"phase": "verify", "fixAgent": "engineer", "maxIterations": 0},
            ]
        )
        with pytest.raises(PipelineConfigError, match=r"pipeline\[0\]\.maxIterations"):
            parse_pipeline_config(raw)

    def test_error_message_prefix(self) -> None:
        with pytest.raises(PipelineConfigError, match="^Pipeline config error: "):
            parse_pipeline_config("not a mapping")


class TestLoadPipelineConfig:
    """Tests for load_pipeline_config file discovery."""

    def test_bundled_default(self, tmp_path) -> None:
        config = load_pipeline_config(tmp_path, env={})

        assert [p.kind.value for p in config.phases] == [
            "spec",
            "decompose",
            "design",
            "implement",
            "cross-model-review",
            "verify",
        ]
        assert config.phases[2].condition is PhaseCondition.HAS_FRONTEND_TASKS

    def test_repo_yaml_preferred(self, tmp_path) -> None:
        (tmp_path / "swarm.config.yaml").write_text(
            "agents:\n  pm: builtin:pm\npipeline:\n  - phase: decompose\n    agent: pm\n"
        )

        config = load_pipeline_config(tmp_path, env={})

        assert len(config.phases) == 1

    def test_json_config(self, tmp_path) -> None:
        (tmp_path / "swarm.config.json").write_text(json.dumps(minimal()))

        assert len(load_pipeline_config(tmp_path, env={}).phases) == 2

    def test_invalid_yaml(self, tmp_path) -> None:
        (tmp_path / "swarm.config.yaml").write_text("agents: [unclosed")

        with pytest.raises(PipelineConfigError, match="Failed to parse"):
            load_pipeline_config(tmp_path, env={})

    def test_model_environment_overrides(self, tmp_path) -> None:
        config = load_pipeline_config(
            tmp_path, env={"PRIMARY_MODEL": "model-x", "REVIEW_MODEL": "model-y"}
        )

        assert (config.primary_model, config.review_model) == ("model-x", "model-y")
