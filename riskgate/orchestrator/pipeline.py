"""Main pipeline orchestrator for riskgate."""

import time
import uuid
from typing import Optional

from ..adapters.github_client import GitHubClient
from ..adapters.llm_client import AnthropicLLMClient
from ..adapters.notifier import Notifier, NullNotifier, resolve_notifier, safe_notify
from ..config import Settings, get_settings
from ..logging import get_logger, log_pipeline_event
from ..models.execution import ChangeContext, ChangeEventOutcome, ExecutionResult
from ..models.findings import AnalysisFindings
from ..models.governance import GovernanceDecision
from .executor import AutonomousExecutor
from .fixer import CIAutoFixer
from .generator import TestGenerationOrchestrator
from .governance import compute_governance_decision
from .monitor import CIMonitor
from .pattern_detector import RepositorySnapshot
from .validators import resolve_validator

logger = get_logger(__name__)


class GovernancePipeline:
    """Scores a change and drives its autonomous test generation.

    The governance decision is computed first and returned regardless of
    what happens in the autonomous half.
    """

    def __init__(
        self,
        executor: Optional[AutonomousExecutor] = None,
        notifier: Optional[Notifier] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.executor = executor
        self.notifier = notifier or NullNotifier()

    @classmethod
    def for_repository(cls, owner: str, repo: str, settings: Optional[Settings] = None) -> "GovernancePipeline":
        """Wire the production collaborators for one repository."""
        settings = settings or get_settings()
        notifier = resolve_notifier()

        if not settings.autonomous.enabled:
            return cls(executor=None, notifier=notifier, settings=settings)

        github = GitHubClient(owner, repo)
        llm = AnthropicLLMClient()
        validator = resolve_validator(settings)
        generator = TestGenerationOrchestrator(llm, validator=validator, settings=settings)

        monitor = None
        if settings.autonomous.monitor_ci:
            fixer = CIAutoFixer(github, llm, validator, notifier, settings) if settings.autonomous.auto_fix else None
            monitor = CIMonitor(github, fixer, notifier, settings)

        executor = AutonomousExecutor(github, generator, monitor, settings)
        return cls(executor=executor, notifier=notifier, settings=settings)

    @property
    def monitor(self) -> Optional[CIMonitor]:
        return self.executor.monitor if self.executor else None

    def compute_governance_decision(self, findings: AnalysisFindings) -> GovernanceDecision:
        return compute_governance_decision(findings)

    async def run_autonomous_pipeline(
        self,
        findings: AnalysisFindings,
        context: ChangeContext,
        repo: Optional[RepositorySnapshot] = None,
    ) -> ExecutionResult:
        """Run test generation and the companion PR flow.

        Returns once CI monitoring is scheduled; it does not wait for CI.
        """
        if self.executor is None or not self.settings.autonomous.enabled:
            logger.info("Autonomous pipeline disabled", repository=context.repository)
            return ExecutionResult()

        result = await self.executor.execute(findings, context, repo)

        if result.companion_pr and self.settings.notify_on.test_pr_created:
            await safe_notify(
                self.notifier,
                "Test PR created",
                f"Generated {len(result.artifacts)} test file(s) for {context.pull_url}",
                {
                    "Repository": context.repository,
                    "Test PR": result.companion_pr.url,
                    "Branch": result.companion_pr.branch,
                },
            )
        return result

    async def process_change_event(
        self,
        findings: AnalysisFindings,
        context: ChangeContext,
        repo: Optional[RepositorySnapshot] = None,
    ) -> ChangeEventOutcome:
        """Decide on a change, then run the autonomous pipeline for it."""
        run_id = str(uuid.uuid4())
        start_time = time.time()

        log_pipeline_event(
            logger,
            run_id=run_id,
            phase="started",
            repository=context.repository,
            pull_number=context.pull_number,
        )

        decision = self.compute_governance_decision(findings)
        log_pipeline_event(
            logger,
            run_id=run_id,
            phase="decided",
            repository=context.repository,
            pull_number=context.pull_number,
            risk_score=decision.risk_score,
            recommendation=decision.recommendation,
        )
        await self._notify_decision(findings, context, decision)

        try:
            execution = await self.run_autonomous_pipeline(findings, context, repo)
        except Exception as e:
            logger.error("Autonomous pipeline failed", run_id=run_id, error=str(e))
            execution = ExecutionResult(errors=[str(e)])

        log_pipeline_event(
            logger,
            run_id=run_id,
            phase="completed",
            repository=context.repository,
            pull_number=context.pull_number,
            duration_seconds=round(time.time() - start_time, 3),
            tests_generated=len(execution.artifacts),
            companion_pr=execution.companion_pr.number if execution.companion_pr else None,
            errors=len(execution.errors),
        )

        return ChangeEventOutcome(decision=decision, execution=execution)

    async def _notify_decision(
        self,
        findings: AnalysisFindings,
        context: ChangeContext,
        decision: GovernanceDecision,
    ) -> None:
        notify_on = self.settings.notify_on
        critical = findings.overall_risk == 'critical' or decision.is_blocking

        if critical and notify_on.critical_risk:
            title = "Critical risk detected"
        elif notify_on.analysis:
            title = "Change analyzed"
        else:
            return

        await safe_notify(
            self.notifier,
            title,
            f"{context.title or context.pull_url}: {decision.label}",
            {
                "Repository": context.repository,
                "PR": f"#{context.pull_number}",
                "Risk Score": f"{decision.risk_score}/100",
                "Overall Risk": findings.overall_risk,
            },
        )
