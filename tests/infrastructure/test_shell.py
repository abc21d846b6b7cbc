"""Tests for the shell command runner."""

import sys

import pytest

from swarmpipe.infrastructure.shell import ShellRunner

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="POSIX shell commands")


class TestShellRunner:
    """Tests for ShellRunner.run."""

    async def test_success(self, tmp_path) -> None:
        result = await ShellRunner().run("echo hello", str(tmp_path), timeout=10)

        assert result.passed
        assert result.output.strip() == "hello"

    async def test_failure_merges_stderr(self, tmp_path) -> None:
        result = await ShellRunner().run("echo broken >&2; exit 3", str(tmp_path), timeout=10)

        assert result.returncode == 3
        assert not result.passed
        assert "broken" in result.output

    async def test_runs_in_cwd(self, tmp_path) -> None:
        (tmp_path / "marker.txt").write_text("")

        result = await ShellRunner().run("ls", str(tmp_path), timeout=10)

        assert "marker.txt" in result.output

    async def test_timeout(self, tmp_path) -> None:
        result = await ShellRunner().run("sleep 5", str(tmp_path), timeout=0.2)

        assert result.timed_out
        assert not result.passed
        assert "Timed out" in result.output

    async def test_output_keeps_tail(self, tmp_path) -> None:
        runner = ShellRunner(max_output_chars=5)

        result = await runner.run("printf 0123456789", str(tmp_path), timeout=10)

        assert result.output == "56789"
