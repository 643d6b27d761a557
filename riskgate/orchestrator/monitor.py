"""CI monitoring of companion pull requests."""

import asyncio
from typing import List, Optional, Set

from ..adapters.github_client import GitHubClient
from ..adapters.notifier import Notifier, safe_notify
from ..config import Settings, get_settings
from ..logging import get_logger
from ..models.artifacts import GeneratedTestArtifact
from ..models.ci import CICheckOutcome
from ..models.execution import ChangeContext
from ..models.sessions import AutonomousExecutionSession, SessionRegistry
from .fixer import CIAutoFixer

logger = get_logger(__name__)


class CIMonitor:
    """Polls CI for companion PRs, one task per session.

    Each session runs a bounded loop: an initial grace delay, then up to
    ``ci_max_checks`` polls spaced by ``ci_poll_interval_seconds``. A failing
    run gets at most one remediation attempt; a successful fix restarts the
    poll budget. Every way out of the loop removes the session from the
    registry.
    """

    def __init__(
        self,
        github: GitHubClient,
        fixer: Optional[CIAutoFixer],
        notifier: Notifier,
        settings: Optional[Settings] = None,
        registry: Optional[SessionRegistry] = None,
    ):
        self.settings = settings or get_settings()
        self.github = github
        self.fixer = fixer
        self.notifier = notifier
        self.registry = registry if registry is not None else SessionRegistry()
        self._tasks: Set[asyncio.Task] = set()

    def schedule(
        self,
        context: ChangeContext,
        pr_number: int,
        artifacts: List[GeneratedTestArtifact],
    ) -> asyncio.Task:
        """Register a session and start monitoring it in the background."""
        session = self.registry.create(pr_number, artifacts)
        task = asyncio.create_task(
            self._run(context, session),
            name=f"ci-monitor-{context.repository}#{pr_number}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        logger.info(
            "CI monitoring scheduled",
            pr_number=pr_number,
            initial_delay=self.settings.ci_initial_delay_seconds,
            max_checks=self.settings.ci_max_checks,
        )
        return task

    async def wait_closed(self) -> None:
        """Wait for every live session to reach a terminal state."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        """Cancel all live sessions."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _run(self, context: ChangeContext, session: AutonomousExecutionSession) -> AutonomousExecutionSession:
        settings = self.settings
        pr_number = session.pr_number

        try:
            await asyncio.sleep(settings.ci_initial_delay_seconds)
            session.transition('polling')

            while True:
                session.checks_performed += 1
                if session.checks_performed > settings.ci_max_checks:
                    logger.warning(
                        "CI monitoring timed out",
                        pr_number=pr_number,
                        checks=session.checks_performed - 1,
                    )
                    session.transition('timeout')
                    break

                try:
                    outcome = await self.github.get_check_status(pr_number)
                except Exception as e:
                    logger.error(
                        "Error checking CI status",
                        pr_number=pr_number,
                        check=session.checks_performed,
                        error=str(e),
                    )
                    await asyncio.sleep(settings.ci_poll_interval_seconds)
                    continue

                logger.info(
                    "CI status check",
                    pr_number=pr_number,
                    check=session.checks_performed,
                    status=outcome.status,
                )

                if outcome.status == 'pending':
                    await asyncio.sleep(settings.ci_poll_interval_seconds)
                    continue

                if outcome.status == 'success':
                    logger.info("CI checks passed", pr_number=pr_number)
                    session.transition('success')
                    break

                if self._can_remediate(session, outcome):
                    session.attempted_auto_fix = True
                    session.transition('remediating')
                    if await self._remediate(context, session, outcome):
                        session.checks_performed = 0
                        session.transition('polling')
                        await asyncio.sleep(settings.ci_poll_interval_seconds)
                        continue

                await self._report_failure(context, session, outcome)
                session.transition('reported_failure')
                break

        except asyncio.CancelledError:
            logger.info("CI monitoring cancelled", pr_number=pr_number, state=session.state)
            raise
        finally:
            self.registry.remove(pr_number)

        logger.info(
            "CI monitoring finished",
            pr_number=pr_number,
            state=session.state,
            attempted_auto_fix=session.attempted_auto_fix,
        )
        return session

    def _can_remediate(self, session: AutonomousExecutionSession, outcome: CICheckOutcome) -> bool:
        return (
            self.fixer is not None
            and self.settings.autonomous.auto_fix
            and not session.attempted_auto_fix
            and bool(outcome.failed_checks)
        )

    async def _remediate(
        self,
        context: ChangeContext,
        session: AutonomousExecutionSession,
        outcome: CICheckOutcome,
    ) -> bool:
        logger.info(
            "CI failed, attempting auto-fix",
            pr_number=session.pr_number,
            failed_checks=[c.name for c in outcome.failed_checks],
        )
        try:
            result = await self.fixer.attempt_fix(
                context,
                session.pr_number,
                outcome.failed_checks,
                session.original_artifacts,
            )
        except Exception as e:
            logger.error("Auto-fix raised", pr_number=session.pr_number, error=str(e))
            return False

        logger.info(
            "Auto-fix finished",
            pr_number=session.pr_number,
            success=result.success,
            final_status=result.final_status,
        )
        return result.success

    async def _report_failure(
        self,
        context: ChangeContext,
        session: AutonomousExecutionSession,
        outcome: CICheckOutcome,
    ) -> None:
        failing = [c for c in outcome.checks if c.is_failure or c.conclusion == 'cancelled']
        try:
            await self.github.report_unresolved_failure(session.pr_number, failing)
        except Exception as e:
            logger.error("Failed to report CI failure", pr_number=session.pr_number, error=str(e))

        if self.settings.notify_on.ci_failure:
            await safe_notify(
                self.notifier,
                "CI failures need human review",
                f"Generated tests on test PR #{session.pr_number} are failing and could not be fixed automatically.",
                {
                    "Repository": context.repository,
                    "Test PR": f"#{session.pr_number}",
                    "Failed checks": ", ".join(c.name for c in failing) or "unknown",
                },
            )
