"""Healing loop: test, diagnose, repair, repeat."""

import logging
import uuid
from pathlib import Path

import aiofiles
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn

from auto_heal.config import AutoHealConfig
from auto_heal.engines import EngineError, EngineSelector, NoEngineDetectedError, RuntimeProfile
from auto_heal.ledger import Issue, IssueLedger, IssueStatus, LedgerError, MergeResult
from auto_heal.ledger.models import utc_now
from auto_heal.models import AppliedFix, HealReport, LoopState, RunSession, RunStatus
from auto_heal.oracles import DiagnosticOracle, OracleFactory, RepairOracle
from auto_heal.sandbox import DockerSandbox, Sandbox, SandboxResult
from auto_heal.vcs import GitManager, VCSError, VCSManager, VCSOperationError, build_branch_name
from auto_heal.workspace import list_source_files, repo_name_from_url

logger = logging.getLogger(__name__)


class HealingLoopController:
    """Drives one healing run over a repository.

    Flow:
    1. INIT: clone, create the fix branch, detect the runtime profile
    2. TESTING: run the profile's command in the sandbox; pass ends the run
    3. DIAGNOSING: localize failures with the diagnostic oracle and merge
       them into the issue ledger; nothing new or reopened ends the run
    4. REPAIRING: rewrite the file of each open issue, one at a time, then
       go back to TESTING
    5. DONE: commit every FIXED issue separately and push the branch

    The loop never runs more than ``config.max_iterations`` iterations.
    """

    def __init__(
        self,
        config: AutoHealConfig,
        sandbox: Sandbox | None = None,
        diagnostic_oracle: DiagnosticOracle | None = None,
        repair_oracle: RepairOracle | None = None,
        engine_selector: EngineSelector | None = None,
        vcs_class: type[VCSManager] = GitManager,
        console: Console | None = None,
    ) -> None:
        """Initialize the controller.

        Args:
            config: Application configuration
            sandbox: Sandbox runtime (default: Docker)
            diagnostic_oracle: Diagnostic oracle (default: from config)
            repair_oracle: Repair oracle (default: from config)
            engine_selector: Engine selector (default: Node.js, then Python)
            vcs_class: Version control implementation used to clone
            console: Console for progress output
        """
        self.config = config
        self.sandbox = sandbox or DockerSandbox(
            timeout=config.sandbox_timeout,
            memory_limit=config.sandbox_memory_limit,
            cpu_limit=config.sandbox_cpu_limit,
        )
        self.diagnostic_oracle = diagnostic_oracle or OracleFactory.create_diagnostic(config)
        self.repair_oracle = repair_oracle or OracleFactory.create_repair(config)
        self.engine_selector = engine_selector or EngineSelector()
        self.vcs_class = vcs_class
        self.console = console or Console()

    async def run(
        self,
        repo_url: str,
        team_name: str | None = None,
        leader_name: str | None = None,
    ) -> HealReport:
        """Heal a repository.

        Args:
            repo_url: Remote repository URL
            team_name: Optional team name used in the branch name
            leader_name: Optional leader name used in the branch name

        Returns:
            Final report; its status is always PASSED or FAILED
        """
        session = RunSession(run_id=uuid.uuid4().hex, repo_url=repo_url)
        self._log(session, f"Starting run {session.run_id} for {repo_url}", "bold")

        try:
            vcs, profile = self._initialize(session, team_name, leader_name)
            ledger = IssueLedger.create(
                self.config.ledger_dir,
                session.run_id,
                repo_url,
                session.branch_name or "",
            )
        except (VCSError, EngineError, LedgerError) as e:
            self._log(session, f"✗ Initialization failed: {e}", "red")
            return self._finish(session, None, error_message=str(e))

        error_message = None
        try:
            await self._heal(session, ledger, profile)
        except LedgerError as e:
            logger.exception("Issue ledger failure")
            self._log(session, f"✗ Issue ledger failure: {e}", "red")
            session.status = RunStatus.FAILED
            error_message = str(e)

        commits, pushed = self._commit_and_push(session, vcs, ledger)
        return self._finish(session, ledger, commits=commits, pushed=pushed, error_message=error_message)

    def _initialize(
        self,
        session: RunSession,
        team_name: str | None,
        leader_name: str | None,
    ) -> tuple[VCSManager, RuntimeProfile]:
        """Clone, branch and detect the runtime profile.

        Raises:
            VCSError: If cloning or branching fails
            EngineError: If no runtime profile applies
        """
        session.state = LoopState.INIT
        workspace_dir = Path(self.config.workspace_dir).resolve()
        workspace_dir.mkdir(parents=True, exist_ok=True)
        destination = workspace_dir / f"{repo_name_from_url(session.repo_url)}-{session.run_id}"

        vcs = self.vcs_class.clone(session.repo_url, destination, token=self.config.github_token)
        session.working_tree = destination
        self._log(session, f"✓ Cloned repository to {destination}", "green")

        vcs.configure_identity(self.config.git_author_name, self.config.git_author_email)
        branch_name = build_branch_name(team_name, leader_name)
        vcs.create_branch(branch_name)
        current_branch = vcs.get_current_branch()
        if current_branch != branch_name:
            msg = f"Expected branch {branch_name} to be checked out, found {current_branch}"
            raise VCSOperationError(msg)
        session.branch_name = branch_name
        self._log(session, f"✓ Branch: {branch_name}", "green")

        profile = self.engine_selector.detect(destination)
        if profile is None:
            msg = "No supported language detected"
            raise NoEngineDetectedError(msg)
        self._log(session, f"✓ Detected {profile.engine_type.display_name} project", "green")

        return vcs, profile

    async def _heal(self, session: RunSession, ledger: IssueLedger, profile: RuntimeProfile) -> None:
        """Run the test-diagnose-repair loop until it terminates."""
        root = self._working_tree(session)
        max_iterations = self.config.max_iterations

        for iteration in range(1, max_iterations + 1):
            session.iteration = iteration
            self._log(session, f"━━━ Iteration {iteration} / {max_iterations} ━━━", "bold")

            session.state = LoopState.TESTING
            result = await self._run_checks(session, profile)
            if result.success:
                session.status = RunStatus.PASSED
                self._log(session, f"All checks PASSED on iteration {iteration}!", "bold green")
                return

            session.state = LoopState.DIAGNOSING
            merge = await self._diagnose(session, ledger, result.output)
            if not merge.has_changes:
                self._log(
                    session,
                    "⚠ No new or reopened issues, but checks still fail. Manual review needed.",
                    "yellow",
                )
                session.status = RunStatus.FAILED
                return

            if iteration == max_iterations:
                self._log(session, f"Max iterations ({max_iterations}) reached.", "yellow")
                session.status = RunStatus.FAILED
                return

            session.state = LoopState.REPAIRING
            await self._repair_open_issues(session, ledger, root, result.output)

        session.status = RunStatus.FAILED

    async def _run_checks(self, session: RunSession, profile: RuntimeProfile) -> SandboxResult:
        """Run the profile's command in the sandbox and apply its failure predicate."""
        self._log(session, "Running checks in sandbox...", "dim")
        raw = await self.sandbox.execute(self._working_tree(session), profile.command, profile.image)
        result = profile.evaluate(raw)
        session.last_output = result.output

        if result.success:
            self._log(session, "Check result: ✓ PASS", "green")
        elif result.forced_failure_marker:
            self._log(
                session,
                f"Check result: ✗ FAIL (exit code 0, but output contains {result.forced_failure_marker.strip()!r})",
                "red",
            )
        else:
            self._log(session, f"Check result: ✗ FAIL ({result.outcome.value.lower()})", "red")
        return result

    async def _diagnose(self, session: RunSession, ledger: IssueLedger, output: str) -> MergeResult:
        """Ask the diagnostic oracle for issues and merge them into the ledger."""
        root = self._working_tree(session)
        scan = "comprehensive scan" if session.iteration == 1 else "re-scan"
        self._log(session, f"Analyzing failures ({scan})...", "dim")

        bounded_output = output[: self.config.diagnosis_output_limit]
        try:
            discovered = await self.diagnostic_oracle.analyze(bounded_output, list_source_files(root))
        except Exception as e:
            logger.exception("Diagnostic oracle failed")
            self._log(session, f"⚠ Diagnostic oracle failed: {e}", "yellow")
            discovered = []

        merge = ledger.merge(discovered, session.iteration)
        logger.info(
            f"Iteration {session.iteration}: {len(discovered)} found, "
            f"{len(merge.new)} new, {len(merge.reopened)} reopened, {merge.skipped} already known"
        )

        if merge.reopened:
            self._log(session, f"⚠ {len(merge.reopened)} issue(s) reappeared after fix. Re-opening...", "yellow")
        if merge.new:
            self._log(session, f"Found {len(merge.new)} new issue(s):", "cyan")
            for idx, issue in enumerate(merge.new, 1):
                self._log(
                    session,
                    f"  {idx}. [{issue.kind.value}] {issue.file}:{issue.line or '?'} - {issue.description}",
                )

        return merge

    async def _repair_open_issues(
        self,
        session: RunSession,
        ledger: IssueLedger,
        root: Path,
        output: str,
    ) -> None:
        """Repair each open issue in discovery order, recording every outcome."""
        snippet = output[: self.config.repair_context_limit]
        open_issues = ledger.open_issues()
        self._log(session, f"Applying fixes for {len(open_issues)} open issue(s)...", "dim")

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=self.console,
        ) as progress:
            for idx, issue in enumerate(open_issues, 1):
                task = progress.add_task(
                    f"[cyan]Fixing issue {idx}/{len(open_issues)} [{issue.kind.value}] {issue.file}...",
                    total=None,
                )

                outcome = await self._repair_issue(issue, root, snippet)
                ledger.mark_resolved(issue.key, outcome)

                if outcome is IssueStatus.FIXED:
                    session.applied_fixes.append(
                        AppliedFix(
                            file=issue.file,
                            kind=issue.kind,
                            line=issue.line,
                            description=issue.description,
                            iteration=session.iteration,
                        )
                    )
                    progress.update(task, description=f"[green]✓ Fixed [{issue.kind.value}] in {issue.file}[/green]")
                    session.log.append(f"  ✓ Fixed [{issue.kind.value}] in {issue.file}")
                else:
                    progress.update(task, description=f"[red]✗ {outcome.value}: {issue.file}[/red]")
                    session.log.append(f"  ✗ {outcome.value}: {issue.file}")

    async def _repair_issue(self, issue: Issue, root: Path, snippet: str) -> IssueStatus:
        """Rewrite the issue's file with the repair oracle's output.

        Returns:
            FIXED, FAILED_FILE_NOT_FOUND or FAILED_GENERATION
        """
        path = root / issue.file
        if not path.is_file():
            logger.error(f"File not found: {path}")
            return IssueStatus.FAILED_FILE_NOT_FOUND

        try:
            async with aiofiles.open(path, encoding="utf-8") as f:
                content = await f.read()

            fixed_content = await self.repair_oracle.repair(issue, content, snippet)

            async with aiofiles.open(path, mode="w", encoding="utf-8") as f:
                await f.write(fixed_content)
        except Exception as e:
            logger.error(f"Failed to fix {issue.key}: {e}")
            return IssueStatus.FAILED_GENERATION

        return IssueStatus.FIXED

    def _commit_and_push(
        self,
        session: RunSession,
        vcs: VCSManager,
        ledger: IssueLedger,
    ) -> tuple[list[str], bool]:
        """Commit each FIXED issue and push the branch.

        Returns:
            Tuple of (commit SHAs, whether the push succeeded)
        """
        session.state = LoopState.DONE
        commits: list[str] = []

        fixed_issues = [issue for issue in ledger.all() if issue.status is IssueStatus.FIXED]
        if fixed_issues:
            self._log(session, f"Committing {len(fixed_issues)} fix(es) to branch...", "dim")

        for issue in fixed_issues:
            try:
                sha, message = vcs.commit_fix(issue)
                if sha is None:
                    logger.debug(f"No changes left to commit for {issue.key}")
                    continue
                ledger.record_commit(issue.key, message)
            except (VCSError, LedgerError) as e:
                self._log(session, f"  ⚠ Commit skipped for {issue.file}: {e}", "yellow")
                continue
            commits.append(sha)
            self._log(session, f"  ✓ Committed: {issue.file} [{issue.kind.value}]", "green")

        branch_name = session.branch_name or ""
        self._log(session, f'Pushing branch "{branch_name}"...', "dim")
        try:
            vcs.push(branch_name, force=True, set_upstream=True)
        except VCSError as e:
            logger.warning(f"Push failed: {e}")
            self._log(session, f"⚠ Push failed: {e}", "yellow")
            return commits, False

        self._log(session, "✓ Branch pushed successfully!", "green")
        return commits, True

    def _finish(
        self,
        session: RunSession,
        ledger: IssueLedger | None,
        commits: list[str] | None = None,
        pushed: bool = False,
        error_message: str | None = None,
    ) -> HealReport:
        """Settle the terminal status and build the report."""
        session.state = LoopState.DONE
        if session.status is RunStatus.RUNNING:
            session.status = RunStatus.FAILED
        session.end_time = utc_now()

        if ledger is not None:
            try:
                ledger.set_status(session.status)
            except LedgerError as e:
                logger.error(f"Failed to record final status: {e}")

        issues = ledger.all() if ledger is not None else []
        report = HealReport(
            run_id=session.run_id,
            repo_url=session.repo_url,
            branch_name=session.branch_name,
            status=session.status,
            iterations=session.iteration,
            total_open_failures=sum(1 for issue in issues if issue.status is not IssueStatus.FIXED),
            total_fixes_applied=len(session.applied_fixes),
            commits=commits or [],
            pushed=pushed,
            error_message=error_message,
            issues=issues,
            ledger_path=ledger.path if ledger is not None else None,
            start_time=session.start_time,
            end_time=session.end_time,
            log=list(session.log),
        )

        logger.info(f"Run {session.run_id} finished: {session.status.value}")
        return report

    def _log(self, session: RunSession, message: str, style: str | None = None) -> None:
        """Record a progress line and echo it to the console."""
        session.log.append(message)
        if style:
            self.console.print(f"[{style}]{message}[/{style}]")
        else:
            self.console.print(message)

    @staticmethod
    def _working_tree(session: RunSession) -> Path:
        if session.working_tree is None:
            msg = "Run session has no working tree"
            raise RuntimeError(msg)
        return session.working_tree
