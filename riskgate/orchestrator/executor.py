"""Autonomous execution: generate tests, commit them and open a companion PR."""

import posixpath
import time
from datetime import datetime, timezone
from typing import Dict, List, Optional

from ..adapters.github_client import GitHubClient
from ..config import Settings, get_settings
from ..logging import get_logger, log_audit_event
from ..models.artifacts import GeneratedTestArtifact
from ..models.execution import BranchInfo, ChangeContext, ExecutionResult
from ..models.findings import AnalysisFindings
from .generator import TestGenerationOrchestrator
from .monitor import CIMonitor
from .pattern_detector import RepositorySnapshot
from .summaries import format_companion_pr_body

logger = get_logger(__name__)

ACTOR = "riskgate"


def generate_test_branch_name(prefix: str, pull_number: int, now: Optional[datetime] = None) -> str:
    """``<prefix>/tests-pr-<n>-<UTC timestamp>``, unique to the microsecond."""
    now = now or datetime.now(timezone.utc)
    return f"{prefix}/tests-pr-{pull_number}-{now.strftime('%Y%m%dT%H%M%S%fZ')}"


def build_commit_message(context: ChangeContext, artifacts: List[GeneratedTestArtifact]) -> str:
    files = "\n".join(f"- {a.filename} ({a.framework})" for a in artifacts)
    message = (
        f"test: add automated tests for PR #{context.pull_number}\n\n"
        f"Generated {len(artifacts)} test file(s):\n{files}"
    )
    if context.title:
        message += f"\n\nTriggered by: {context.title}"
    return message


class AutonomousExecutor:
    """Runs the side-effecting half of the pipeline for one change."""

    def __init__(
        self,
        github: GitHubClient,
        generator: TestGenerationOrchestrator,
        monitor: Optional[CIMonitor] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.github = github
        self.generator = generator
        self.monitor = monitor

    async def execute(
        self,
        findings: AnalysisFindings,
        context: ChangeContext,
        repo: Optional[RepositorySnapshot] = None,
    ) -> ExecutionResult:
        """Generate, commit and propose tests; never raises.

        The first failing step is recorded in ``errors`` and ends the run.
        CI monitoring, when scheduled, continues after this returns.
        """
        result = ExecutionResult()
        autonomous = self.settings.autonomous

        if not autonomous.enabled:
            logger.info("Autonomous execution is disabled")
            return result

        step = "generate tests"
        try:
            generation = await self.generator.generate(findings, context, repo or self.github)
            if not generation.artifacts:
                logger.info("No tests generated, skipping autonomous execution")
                return result
            result.artifacts = list(generation.artifacts)

            step = "create branch"
            branch_name = generate_test_branch_name(self.settings.branch_prefix, context.pull_number)
            base = await self._resolve_base(context)
            branch = await self._create_branch(context, branch_name, base.sha)

            step = "commit tests"
            await self._commit(context, branch.name, result.artifacts)

            if not autonomous.create_pr:
                return result

            step = "open companion PR"
            default_branch = base if autonomous.base_branch_strategy == 'default' else await self.github.get_default_branch()
            started = time.monotonic()
            result.companion_pr = await self.github.open_companion_pr(
                title=f"test: automated tests for #{context.pull_number}",
                body=format_companion_pr_body(context, result.artifacts),
                head=branch.name,
                base=default_branch.name,
            )
            log_audit_event(
                logger,
                event="companion_pr_opened",
                actor=ACTOR,
                action="open_pr",
                resource=f"{context.repository}#{result.companion_pr.number}",
                status="success",
                duration_ms=int((time.monotonic() - started) * 1000),
                url=result.companion_pr.url,
            )

            if autonomous.monitor_ci and self.monitor is not None:
                step = "schedule CI monitoring"
                self.monitor.schedule(context, result.companion_pr.number, result.artifacts)
                result.monitoring_scheduled = True

        except Exception as e:
            logger.error("Autonomous execution failed", step=step, error=str(e))
            result.errors.append(f"{step}: {e}")

        return result

    async def _resolve_base(self, context: ChangeContext) -> BranchInfo:
        if self.settings.autonomous.base_branch_strategy == 'pr-head':
            sha = context.head_sha or await self.github.get_head_commit(context.pull_number)
            return BranchInfo(name=f"pr-{context.pull_number}-head", sha=sha)
        return await self.github.get_default_branch()

    async def _create_branch(self, context: ChangeContext, name: str, base_sha: str) -> BranchInfo:
        branch = await self.github.create_branch(name, base_sha)
        log_audit_event(
            logger,
            event="branch_created",
            actor=ACTOR,
            action="create_branch",
            resource=f"{context.repository}:{name}",
            status="success",
            base_sha=base_sha,
        )
        return branch

    async def _commit(self, context: ChangeContext, branch: str, artifacts: List[GeneratedTestArtifact]) -> None:
        output_dir = self.settings.test_output_dir
        files: Dict[str, str] = {
            posixpath.join(output_dir, a.filename) if output_dir else a.filename: a.code
            for a in artifacts
        }
        commit = await self.github.commit_files(branch, files, build_commit_message(context, artifacts))
        log_audit_event(
            logger,
            event="tests_committed",
            actor=ACTOR,
            action="commit",
            resource=f"{context.repository}:{branch}",
            status="success",
            sha=commit.sha,
            files_count=len(files),
        )
