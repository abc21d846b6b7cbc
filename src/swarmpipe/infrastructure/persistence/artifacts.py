"""Human-readable run artifacts: role summaries, run summary, analyses and plans."""

import shutil
from datetime import datetime
from pathlib import Path

from swarmpipe.domain.interfaces import ArtifactWriterInterface

LATEST_PLAN_NAME = "plan-latest.md"


class FilesystemArtifactWriter(ArtifactWriterInterface):
    """
    Writes Markdown artifacts.

    Layout:
    {roles_dir}/{role}.md          # "# {role} Summary" + timestamp + content
    {summary_path}                 # final run summary
    {analysis_path}                # repository analysis (analyze mode)
    {plans_dir}/plan-{stamp}.md    # plans (plan mode)
    {plans_dir}/plan-latest.md     # copy of the newest plan
    """

    def __init__(self, roles_dir: Path, summary_path: Path, analysis_path: Path, plans_dir: Path):
        self._roles_dir = Path(roles_dir)
        self._summary_path = Path(summary_path)
        self._analysis_path = Path(analysis_path)
        self._plans_dir = Path(plans_dir)

    def _role_path(self, role: str) -> Path:
        return self._roles_dir / f"{role}.md"

    def write_role_summary(self, role: str, content: str) -> None:
        timestamp = datetime.now().isoformat()
        self._roles_dir.mkdir(parents=True, exist_ok=True)
        self._role_path(role).write_text(
            f"# {role} Summary\n\n**Timestamp:** {timestamp}\n\n{content}\n",
            encoding="utf-8",
        )

    def read_role_summary(self, role: str) -> str | None:
        path = self._role_path(role)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def write_run_summary(self, content: str) -> None:
        self._summary_path.parent.mkdir(parents=True, exist_ok=True)
        self._summary_path.write_text(content, encoding="utf-8")

    def write_analysis(self, content: str) -> str:
        self._analysis_path.parent.mkdir(parents=True, exist_ok=True)
        self._analysis_path.write_text(content, encoding="utf-8")
        return str(self._analysis_path)

    def write_plan(self, content: str, stamp: str) -> str:
        self._plans_dir.mkdir(parents=True, exist_ok=True)
        path = self._plans_dir / f"plan-{stamp}.md"
        path.write_text(content, encoding="utf-8")
        shutil.copyfile(path, self._plans_dir / LATEST_PLAN_NAME)
        return str(path)


class InMemoryArtifactWriter(ArtifactWriterInterface):
    """In-memory implementation for testing."""

    def __init__(self) -> None:
        self.roles: dict[str, str] = {}
        self.run_summary: str | None = None
        self.analysis: str | None = None
        self.plans: dict[str, str] = {}

    def write_role_summary(self, role: str, content: str) -> None:
        self.roles[role] = content

    def read_role_summary(self, role: str) -> str | None:
        return self.roles.get(role)

    def write_run_summary(self, content: str) -> None:
        self.run_summary = content

    def write_analysis(self, content: str) -> str:
        self.analysis = content
        return "memory://analysis"

    def write_plan(self, content: str, stamp: str) -> str:
        self.plans[stamp] = content
        return f"memory://plans/plan-{stamp}.md"
