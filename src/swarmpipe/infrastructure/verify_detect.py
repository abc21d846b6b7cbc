"""
Auto-detect verification commands from project files.

Scans the repository root for common build-tool markers and infers
build/test/lint commands. The first matching detector wins.
"""

import json
import logging
from collections.abc import Callable
from pathlib import Path

from swarmpipe.domain.config import VerifyConfig, merge_verify_configs
from swarmpipe.domain.interfaces import VerifyDetectorInterface

logger = logging.getLogger(__name__)


def _detect_package_manager(repo_root: Path) -> str:
    if (repo_root / "pnpm-lock.yaml").exists():
        return "pnpm"
    if (repo_root / "bun.lockb").exists() or (repo_root / "bun.lock").exists():
        return "bun"
    if (repo_root / "yarn.lock").exists():
        return "yarn"
    return "npm"


def _from_package_json(repo_root: Path) -> VerifyConfig | None:
    pkg_path = repo_root / "package.json"
    if not pkg_path.exists():
        return None
    try:
        pkg = json.loads(pkg_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Could not read %s: %s", pkg_path, e)
        return None
    scripts = pkg.get("scripts") if isinstance(pkg, dict) else None
    if not isinstance(scripts, dict):
        # A Node project without scripts: claim it so other detectors don't
        return VerifyConfig()

    run = f"{_detect_package_manager(repo_root)} run"
    build = f"{run} build" if "build" in scripts else None
    test = f"{run} test" if "test" in scripts else None
    lint = None
    if "lint" in scripts:
        lint = f"{run} lint"
    elif "check" in scripts:
        lint = f"{run} check"

    if not (build or test or lint):
        return None
    return VerifyConfig(build=build, test=test, lint=lint)


def _from_cargo(repo_root: Path) -> VerifyConfig | None:
    if not (repo_root / "Cargo.toml").exists():
        return None
    return VerifyConfig(build="cargo build", test="cargo test", lint="cargo clippy")


def _from_go(repo_root: Path) -> VerifyConfig | None:
    if not (repo_root / "go.mod").exists():
        return None
    return VerifyConfig(build="go build ./...", test="go test ./...", lint="go vet ./...")


def _from_python(repo_root: Path) -> VerifyConfig | None:
    if not ((repo_root / "pyproject.toml").exists() or (repo_root / "setup.py").exists()):
        return None
    return VerifyConfig(test="pytest", lint="ruff check .")


def _from_maven(repo_root: Path) -> VerifyConfig | None:
    if not (repo_root / "pom.xml").exists():
        return None
    return VerifyConfig(build="mvn compile", test="mvn test")


def _from_gradle(repo_root: Path) -> VerifyConfig | None:
    if not ((repo_root / "build.gradle").exists() or (repo_root / "build.gradle.kts").exists()):
        return None
    return VerifyConfig(build="./gradlew build", test="./gradlew test")


DETECTORS: tuple[Callable[[Path], VerifyConfig | None], ...] = (
    _from_package_json,
    _from_cargo,
    _from_go,
    _from_python,
    _from_maven,
    _from_gradle,
)


def detect_verify_commands(repo_root: Path) -> VerifyConfig | None:
    """
    Infer verification commands from the project layout.

    Args:
        repo_root: Repository root to scan

    Returns:
        Detected commands, or None if no recognizable project was found
    """
    root = Path(repo_root)
    for detect in DETECTORS:
        result = detect(root)
        if result is not None:
            return result
    return None


def resolve_verify_commands(
    repo_root: Path,
    overrides: VerifyConfig | None,
    declared: VerifyConfig | None,
) -> VerifyConfig:
    """
    Resolve each command with priority CLI override > declared config > detected.

    Args:
        repo_root: Repository root used for detection
        overrides: Commands passed on the command line
        declared: ``verify`` section of the pipeline config

    Returns:
        The merged commands (possibly empty)
    """
    return merge_verify_configs(overrides, declared, detect_verify_commands(repo_root))


class ProjectVerifyDetector(VerifyDetectorInterface):
    """Detects verification commands from project marker files."""

    def detect(self, repo_root: Path) -> VerifyConfig | None:
        detected = detect_verify_commands(repo_root)
        if detected is not None:
            logger.debug("Detected verify commands in %s: %s", repo_root, detected)
        return detected
