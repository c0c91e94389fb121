"""Tests for the healing loop controller."""

import io
import json
from pathlib import Path

import git
import pytest
from pytest_mock import MockerFixture
from rich.console import Console

from auto_heal.config import AutoHealConfig
from auto_heal.controller import HealingLoopController
from auto_heal.ledger import DiscoveredIssue, Issue, IssueKind, IssueStatus
from auto_heal.ledger.models import REGRESSION_NOTE
from auto_heal.models import RunStatus
from auto_heal.oracles import DiagnosticOracle, OracleAPIError, OracleResponseError, RepairOracle
from auto_heal.sandbox import Sandbox, SandboxResult
from auto_heal.vcs import GitManager, VCSOperationError

BROKEN_SOURCE = "def add(a, b)\n    return a + b\n"
FIXED_SOURCE = "def add(a, b):\n    return a + b\n"


class FakeSandbox(Sandbox):
    """Sandbox replaying scripted results; the last one repeats."""

    def __init__(self, results: list[SandboxResult]) -> None:
        self.results = list(results)
        self.calls: list[tuple[Path, str, str]] = []

    async def execute(self, root: Path, command: str, image: str) -> SandboxResult:
        self.calls.append((root, command, image))
        if len(self.results) > 1:
            return self.results.pop(0)
        return self.results[0]


class FakeDiagnosticOracle(DiagnosticOracle):
    """Diagnostic oracle replaying scripted findings; the last reply repeats."""

    def __init__(self, replies: list[list[DiscoveredIssue] | Exception]) -> None:
        self.replies = list(replies)
        self.calls: list[tuple[str, list[str]]] = []

    async def analyze(self, output: str, source_hints: list[str]) -> list[DiscoveredIssue]:
        self.calls.append((output, source_hints))
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return reply


class FakeRepairOracle(RepairOracle):
    """Repair oracle returning fixed content per file."""

    def __init__(self, fixes: dict[str, str | Exception] | None = None) -> None:
        self.fixes = fixes or {}
        self.calls: list[tuple[Issue, str, str]] = []

    async def repair(self, issue: Issue, file_content: str, test_output_snippet: str) -> str:
        self.calls.append((issue, file_content, test_output_snippet))
        fix = self.fixes.get(issue.file, FIXED_SOURCE)
        if isinstance(fix, Exception):
            raise fix
        return fix


def failing(output: str = "E   SyntaxError: expected ':' (src/a.py, line 8)") -> SandboxResult:
    return SandboxResult.from_exit_code(1, output)


def passing(output: str = "===== 3 passed in 0.10s =====") -> SandboxResult:
    return SandboxResult.from_exit_code(0, output)


def syntax_issue(file: str = "src/a.py", line: int = 8) -> DiscoveredIssue:
    return DiscoveredIssue(file=file, kind=IssueKind.SYNTAX, line=line, description="missing colon")


@pytest.fixture
def remote_repo(tmp_path: Path) -> Path:
    """Create a bare remote holding a broken Python project.

    Args:
        tmp_path: Pytest temporary directory fixture

    Returns:
        Path to the bare repository
    """
    source_path = tmp_path / "source"
    source = git.Repo.init(source_path)
    (source_path / "src").mkdir()
    (source_path / "src" / "a.py").write_text(BROKEN_SOURCE)
    (source_path / "src" / "b.py").write_text("VALUE = 1\n")
    (source_path / "requirements.txt").write_text("pytest\n")
    source.index.add(["src/a.py", "src/b.py", "requirements.txt"])
    source.index.commit("Initial commit")

    remote_path = tmp_path / "remote.git"
    git.Repo.clone_from(str(source_path), str(remote_path), bare=True)
    return remote_path


@pytest.fixture
def config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> AutoHealConfig:
    """Create test configuration with storage under tmp_path."""
    monkeypatch.chdir(tmp_path)
    return AutoHealConfig(
        oracle_api_key="test-key",
        workspace_dir=tmp_path / "workspaces",
        ledger_dir=tmp_path / "ledgers",
        max_iterations=6,
    )


def make_controller(
    config: AutoHealConfig,
    sandbox: Sandbox,
    diagnostic: DiagnosticOracle | None = None,
    repair: RepairOracle | None = None,
) -> HealingLoopController:
    return HealingLoopController(
        config,
        sandbox=sandbox,
        diagnostic_oracle=diagnostic or FakeDiagnosticOracle([[]]),
        repair_oracle=repair or FakeRepairOracle(),
        console=Console(file=io.StringIO()),
    )


class TestHealingLoopPassing:
    """Runs that end with a passing suite."""

    @pytest.mark.asyncio
    async def test_passes_on_first_iteration(self, config: AutoHealConfig, remote_repo: Path) -> None:
        """Test that a green suite finishes after one iteration with no issues."""
        sandbox = FakeSandbox([passing()])
        diagnostic = FakeDiagnosticOracle([[]])
        controller = make_controller(config, sandbox, diagnostic)

        report = await controller.run(str(remote_repo), team_name="Team", leader_name="Lead")

        assert report.status is RunStatus.PASSED
        assert report.iterations == 1
        assert report.issues == []
        assert report.commits == []
        assert report.pushed is True
        assert diagnostic.calls == []
        assert report.branch_name is not None
        assert report.branch_name.startswith("TEAM_LEAD_AI_Fix_")
        assert report.branch_name in git.Repo(remote_repo).heads

    @pytest.mark.asyncio
    async def test_runs_python_profile_in_sandbox(self, config: AutoHealConfig, remote_repo: Path) -> None:
        """Test that the detected profile drives the sandbox call."""
        sandbox = FakeSandbox([passing()])
        controller = make_controller(config, sandbox)

        await controller.run(str(remote_repo))

        root, command, image = sandbox.calls[0]
        assert image == "python:3.11-alpine"
        assert command.startswith("pip install -r requirements.txt")
        assert (root / "src" / "a.py").read_text() == BROKEN_SOURCE

    @pytest.mark.asyncio
    async def test_fixes_syntax_error_and_commits(self, config: AutoHealConfig, remote_repo: Path) -> None:
        """Test the fail, diagnose, repair, pass scenario end to end."""
        sandbox = FakeSandbox([failing(), passing()])
        diagnostic = FakeDiagnosticOracle([[syntax_issue()]])
        repair = FakeRepairOracle()
        controller = make_controller(config, sandbox, diagnostic, repair)

        report = await controller.run(str(remote_repo))

        assert report.status is RunStatus.PASSED
        assert report.iterations == 2
        assert report.total_fixes_applied == 1
        assert report.total_open_failures == 0

        [issue] = report.issues
        assert (issue.file, issue.kind, issue.line) == ("src/a.py", IssueKind.SYNTAX, 8)
        assert issue.status is IssueStatus.FIXED
        assert issue.fixed_at is not None
        assert issue.commit_message is not None
        assert issue.commit_message.startswith("fix: [SYNTAX] src/a.py: missing colon")

        _, content, snippet = repair.calls[0]
        assert content == BROKEN_SOURCE
        assert "SyntaxError" in snippet

        assert len(report.commits) == 1
        remote = git.Repo(remote_repo)
        pushed_commit = remote.heads[report.branch_name].commit
        assert pushed_commit.hexsha == report.commits[0]
        assert pushed_commit.tree["src/a.py"].data_stream.read().decode() == FIXED_SOURCE

    @pytest.mark.asyncio
    async def test_ledger_persisted_with_final_status(self, config: AutoHealConfig, remote_repo: Path) -> None:
        """Test that the ledger file reflects the finished run."""
        sandbox = FakeSandbox([failing(), passing()])
        controller = make_controller(config, sandbox, FakeDiagnosticOracle([[syntax_issue()]]))

        report = await controller.run(str(remote_repo))

        assert report.ledger_path is not None
        data = json.loads(report.ledger_path.read_text())
        assert data["status"] == "PASSED"
        assert data["end_time"] is not None
        assert data["issues"][0]["status"] == "FIXED"

    @pytest.mark.asyncio
    async def test_forced_failure_marker_triggers_diagnosis(
        self,
        config: AutoHealConfig,
        remote_repo: Path,
    ) -> None:
        """Test that exit code 0 with an F401 report still counts as a failure."""
        unused_import = SandboxResult.from_exit_code(0, "./src/b.py:1:1: F401 'os' imported but unused\n1")
        sandbox = FakeSandbox([unused_import, passing()])
        diagnostic = FakeDiagnosticOracle([
            [DiscoveredIssue(file="src/b.py", kind=IssueKind.LINTING, line=1, description="unused import")],
        ])
        controller = make_controller(config, sandbox, diagnostic, FakeRepairOracle({"src/b.py": "VALUE = 2\n"}))

        report = await controller.run(str(remote_repo))

        assert len(diagnostic.calls) == 1
        assert report.status is RunStatus.PASSED
        assert report.iterations == 2


class TestHealingLoopTermination:
    """Runs that end FAILED."""

    @pytest.mark.asyncio
    async def test_iteration_ceiling_never_exceeded(
        self,
        config: AutoHealConfig,
        remote_repo: Path,
    ) -> None:
        """Test that the loop stops FAILED at max_iterations."""
        config.max_iterations = 3
        sandbox = FakeSandbox([failing()])
        diagnostic = FakeDiagnosticOracle([
            [syntax_issue(line=1)],
            [syntax_issue(line=2)],
            [syntax_issue(line=3)],
            [syntax_issue(line=4)],
        ])
        repair = FakeRepairOracle()
        controller = make_controller(config, sandbox, diagnostic, repair)

        report = await controller.run(str(remote_repo))

        assert report.status is RunStatus.FAILED
        assert report.iterations == 3
        assert len(sandbox.calls) == 3
        # No repairs happen on the last iteration
        assert len(repair.calls) == 2
        assert report.count(IssueStatus.OPEN) == 1

    @pytest.mark.asyncio
    async def test_no_findings_stops(self, config: AutoHealConfig, remote_repo: Path) -> None:
        """Test that a failing suite without findings ends the run."""
        sandbox = FakeSandbox([failing()])
        controller = make_controller(config, sandbox, FakeDiagnosticOracle([[]]))

        report = await controller.run(str(remote_repo))

        assert report.status is RunStatus.FAILED
        assert report.iterations == 1
        assert report.pushed is True

    @pytest.mark.asyncio
    async def test_only_known_issues_stops(self, config: AutoHealConfig, remote_repo: Path) -> None:
        """Test that rediscovering a failed repair is not progress."""
        sandbox = FakeSandbox([failing()])
        repair = FakeRepairOracle({"src/a.py": OracleResponseError("empty reply")})
        controller = make_controller(config, sandbox, FakeDiagnosticOracle([[syntax_issue()]]), repair)

        report = await controller.run(str(remote_repo))

        assert report.status is RunStatus.FAILED
        assert report.iterations == 2
        assert [issue.status for issue in report.issues] == [IssueStatus.FAILED_GENERATION]
        assert report.commits == []

    @pytest.mark.asyncio
    async def test_diagnostic_error_counts_as_no_findings(
        self,
        config: AutoHealConfig,
        remote_repo: Path,
    ) -> None:
        """Test that an unreachable diagnostic oracle ends the run FAILED."""
        sandbox = FakeSandbox([failing()])
        diagnostic = FakeDiagnosticOracle([OracleAPIError("unavailable", status_code=503)])
        controller = make_controller(config, sandbox, diagnostic)

        report = await controller.run(str(remote_repo))

        assert report.status is RunStatus.FAILED
        assert report.iterations == 1
        assert report.error_message is None


class TestHealingLoopRepairs:
    """Per-issue repair outcomes."""

    @pytest.mark.asyncio
    async def test_missing_file_does_not_stop_run(self, config: AutoHealConfig, remote_repo: Path) -> None:
        """Test that a finding for a missing file is marked and the run continues."""
        sandbox = FakeSandbox([failing(), passing()])
        diagnostic = FakeDiagnosticOracle([
            [
                DiscoveredIssue(file="src/missing.py", kind=IssueKind.IMPORT, line=1, description="gone"),
                syntax_issue(),
            ]
        ])
        repair = FakeRepairOracle()
        controller = make_controller(config, sandbox, diagnostic, repair)

        report = await controller.run(str(remote_repo))

        statuses = {issue.file: issue.status for issue in report.issues}
        assert statuses == {
            "src/missing.py": IssueStatus.FAILED_FILE_NOT_FOUND,
            "src/a.py": IssueStatus.FIXED,
        }
        assert [call[0].file for call in repair.calls] == ["src/a.py"]
        assert report.status is RunStatus.PASSED
        assert report.total_open_failures == 1

    @pytest.mark.asyncio
    async def test_repairs_in_discovery_order(self, config: AutoHealConfig, remote_repo: Path) -> None:
        """Test that open issues are repaired one at a time in order."""
        sandbox = FakeSandbox([failing(), passing()])
        diagnostic = FakeDiagnosticOracle([
            [
                DiscoveredIssue(file="src/b.py", kind=IssueKind.LOGIC, line=1, description="wrong value"),
                syntax_issue(),
            ]
        ])
        repair = FakeRepairOracle({"src/b.py": "VALUE = 2\n"})
        controller = make_controller(config, sandbox, diagnostic, repair)

        report = await controller.run(str(remote_repo))

        assert [call[0].file for call in repair.calls] == ["src/b.py", "src/a.py"]
        assert len(report.commits) == 2

    @pytest.mark.asyncio
    async def test_regression_reopens_issue(self, config: AutoHealConfig, remote_repo: Path) -> None:
        """Test that an issue reappearing after its fix is repaired again."""
        sandbox = FakeSandbox([failing(), failing(), passing()])
        diagnostic = FakeDiagnosticOracle([[syntax_issue()], [syntax_issue()]])
        repair = FakeRepairOracle()
        controller = make_controller(config, sandbox, diagnostic, repair)

        report = await controller.run(str(remote_repo))

        assert report.status is RunStatus.PASSED
        assert report.iterations == 3
        assert len(repair.calls) == 2
        assert REGRESSION_NOTE in repair.calls[1][0].description

        [issue] = report.issues
        assert issue.status is IssueStatus.FIXED
        assert issue.reopen_count == 1

    @pytest.mark.asyncio
    async def test_oracle_inputs_are_bounded(self, config: AutoHealConfig, remote_repo: Path) -> None:
        """Test the output limits sent to each oracle."""
        config.diagnosis_output_limit = 50
        config.repair_context_limit = 20
        sandbox = FakeSandbox([failing("x" * 500), passing()])
        diagnostic = FakeDiagnosticOracle([[syntax_issue()]])
        repair = FakeRepairOracle()
        controller = make_controller(config, sandbox, diagnostic, repair)

        await controller.run(str(remote_repo))

        output, hints = diagnostic.calls[0]
        assert len(output) == 50
        assert hints == ["src/a.py", "src/b.py"]
        assert len(repair.calls[0][2]) == 20


class TestHealingLoopFinalization:
    """Commit, push and initialization failures."""

    @pytest.mark.asyncio
    async def test_push_failure_keeps_status(
        self,
        config: AutoHealConfig,
        remote_repo: Path,
        mocker: MockerFixture,
    ) -> None:
        """Test that a rejected push is reported without changing the status."""
        mocker.patch.object(GitManager, "push", side_effect=VCSOperationError("Failed to push: denied"))
        sandbox = FakeSandbox([failing(), passing()])
        controller = make_controller(config, sandbox, FakeDiagnosticOracle([[syntax_issue()]]))

        report = await controller.run(str(remote_repo))

        assert report.status is RunStatus.PASSED
        assert report.pushed is False
        assert len(report.commits) == 1

    @pytest.mark.asyncio
    async def test_clone_failure(self, config: AutoHealConfig, tmp_path: Path) -> None:
        """Test that an initialization failure ends FAILED without iterations."""
        sandbox = FakeSandbox([passing()])
        controller = make_controller(config, sandbox)

        report = await controller.run(str(tmp_path / "does-not-exist.git"))

        assert report.status is RunStatus.FAILED
        assert report.iterations == 0
        assert report.pushed is False
        assert report.commits == []
        assert report.ledger_path is None
        assert report.error_message is not None
        assert sandbox.calls == []

    @pytest.mark.asyncio
    async def test_no_supported_language(self, config: AutoHealConfig, tmp_path: Path) -> None:
        """Test that a repository without manifests fails initialization."""
        source_path = tmp_path / "plain"
        source = git.Repo.init(source_path)
        (source_path / "README.md").write_text("# docs\n")
        source.index.add(["README.md"])
        source.index.commit("Initial commit")
        sandbox = FakeSandbox([passing()])
        controller = make_controller(config, sandbox)

        report = await controller.run(str(source_path))

        assert report.status is RunStatus.FAILED
        assert report.iterations == 0
        assert report.error_message == "No supported language detected"
        assert sandbox.calls == []

    @pytest.mark.asyncio
    async def test_branch_not_checked_out(
        self,
        config: AutoHealConfig,
        remote_repo: Path,
        mocker: MockerFixture,
    ) -> None:
        """Test that initialization fails when the fix branch is not active."""
        mocker.patch.object(GitManager, "get_current_branch", return_value="main")
        sandbox = FakeSandbox([passing()])
        controller = make_controller(config, sandbox)

        report = await controller.run(str(remote_repo), team_name="Team", leader_name="Lead")

        assert report.status is RunStatus.FAILED
        assert report.iterations == 0
        assert report.error_message is not None
        assert "to be checked out, found main" in report.error_message
        assert sandbox.calls == []

    @pytest.mark.asyncio
    async def test_progress_log(self, config: AutoHealConfig, remote_repo: Path) -> None:
        """Test that the report carries human-readable progress lines."""
        sandbox = FakeSandbox([failing(), passing()])
        controller = make_controller(config, sandbox, FakeDiagnosticOracle([[syntax_issue()]]))

        report = await controller.run(str(remote_repo))

        assert any("Iteration 1 / 6" in line for line in report.log)
        assert any("Fixed [SYNTAX] in src/a.py" in line for line in report.log)
        assert any("pushed successfully" in line for line in report.log)
