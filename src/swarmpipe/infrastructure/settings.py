"""
Run settings assembled from CLI arguments and environment variables.

Precedence: explicit argument > environment variable > default.
"""

import os
from collections.abc import Mapping
from datetime import datetime, timezone
from pathlib import Path

from swarmpipe.domain.config import RunSettings, VerifyConfig
from swarmpipe.domain.parsing import extract_sections

PLAN_REQUIREMENTS_SECTION = "Refined Requirements"
PLAN_EXTRA_SECTIONS = ("Engineering Decisions", "Design Decisions")


def _env_str(env: Mapping[str, str], key: str, fallback: str) -> str:
    value = env.get(key)
    return value if value else fallback


def _env_bool(env: Mapping[str, str], key: str, fallback: bool) -> bool:
    value = env.get(key)
    if not value:
        return fallback
    if value == "true":
        return True
    if value == "false":
        return False
    raise ValueError(f'Invalid value for {key}: "{value}". Must be "true" or "false".')


def _env_positive_int(env: Mapping[str, str], key: str, fallback: int) -> int:
    value = env.get(key)
    if not value:
        return fallback
    try:
        parsed = int(value)
    except ValueError:
        parsed = 0
    if parsed <= 0:
        raise ValueError(f'Invalid value for {key}: "{value}". Must be a positive integer.')
    return parsed


def new_run_id() -> str:
    """Timestamp run id safe for use as a directory name."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S-%fZ")


def settings_from_env(
    repo_root: Path,
    issue_body: str = "",
    *,
    run_id: str | None = None,
    resume: bool = False,
    review_run_id: str | None = None,
    plan_provided: bool = False,
    verbose: bool = False,
    verify_overrides: VerifyConfig | None = None,
    env: Mapping[str, str] | None = None,
) -> RunSettings:
    """
    Build RunSettings, applying environment overrides.

    Recognized variables: ``SWARM_DIR``, ``AGENTS_DIR``,
    ``SESSION_TIMEOUT_S``, ``MAX_RETRIES``, ``MAX_AUTO_RESUME``, ``VERBOSE``.

    Raises:
        ValueError: If an environment variable holds an invalid value
    """
    env = os.environ if env is None else env
    return RunSettings(
        repo_root=Path(repo_root),
        run_id=run_id or new_run_id(),
        issue_body=issue_body,
        resume=resume,
        review_run_id=review_run_id,
        plan_provided=plan_provided,
        verbose=verbose or _env_bool(env, "VERBOSE", False),
        swarm_dir=_env_str(env, "SWARM_DIR", ".swarm"),
        agents_dir=_env_str(env, "AGENTS_DIR", ".github/agents"),
        session_timeout_s=float(_env_positive_int(env, "SESSION_TIMEOUT_S", 1800)),
        max_retries=_env_positive_int(env, "MAX_RETRIES", 2),
        max_auto_resume=_env_positive_int(env, "MAX_AUTO_RESUME", 3),
        verify_overrides=verify_overrides,
    )


def read_plan(content: str) -> str:
    """
    Extract the issue body from a plan document.

    Keeps the ``## Refined Requirements`` section plus, when present, the
    engineering and design decision sections (demoted to ``###``).

    Raises:
        ValueError: If the plan has no requirements section
    """
    sections = extract_sections(content)
    if PLAN_REQUIREMENTS_SECTION not in sections:
        raise ValueError(
            f'Plan does not contain a "## {PLAN_REQUIREMENTS_SECTION}" section'
        )
    parts = [sections[PLAN_REQUIREMENTS_SECTION]]
    for name in PLAN_EXTRA_SECTIONS:
        body = sections.get(name)
        if body:
            parts.append(f"### {name}\n\n{body}")
    return "\n\n".join(parts)
