"""
Hexagonal Architecture Boundary Tests.

Tests for domain model contracts shared between the engine and its adapters.
"""

import dataclasses
import json

import pytest

from swarmpipe.domain.config import PipelineConfig, SpecPhaseConfig, VerifyConfig
from swarmpipe.domain.models import IterationSnapshot, PipelineCheckpoint
from swarmpipe.infrastructure.persistence.checkpoint import (
    checkpoint_from_dict,
    checkpoint_to_dict,
)


class TestCheckpointContract:
    """Checkpoints cross the persistence boundary as immutable values."""

    def test_checkpoint_is_immutable(self) -> None:
        checkpoint = PipelineCheckpoint(run_id="run-1")

        with pytest.raises(dataclasses.FrozenInstanceError):
            checkpoint.spec = "changed"  # type: ignore[misc]

    def test_to_context_copies_collections(self) -> None:
        """Mutating a rebuilt context never reaches the snapshot."""
        checkpoint = PipelineCheckpoint(run_id="run-1", tasks=("a",), task_deps=((),))

        context = checkpoint.to_context()
        context.tasks.append("b")
        context.task_deps[0].append(0)

        assert checkpoint.tasks == ("a",)
        assert checkpoint.task_deps == ((),)

    def test_serialized_form_is_plain_json(self) -> None:
        checkpoint = PipelineCheckpoint(
            run_id="run-1",
            iteration_progress=(("review-0", IterationSnapshot("draft", 1)),),
        )

        text = json.dumps(checkpoint_to_dict(checkpoint))

        assert checkpoint_from_dict(json.loads(text)) == checkpoint


class TestConfigContract:
    def test_pipeline_config_is_immutable(self) -> None:
        config = PipelineConfig(phases=(SpecPhaseConfig(agent="pm"),))

        with pytest.raises(dataclasses.FrozenInstanceError):
            config.primary_model = "other"  # type: ignore[misc]

    def test_to_dict_is_json_serializable(self) -> None:
        config = PipelineConfig(
            phases=(SpecPhaseConfig(agent="pm"),),
            verify=VerifyConfig(test="pytest"),
        )

        assert json.loads(json.dumps(config.to_dict()))["verify"]["test"] == "pytest"
