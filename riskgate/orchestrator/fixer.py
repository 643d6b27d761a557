"""Automated remediation of failing CI on companion pull requests."""

import posixpath
import uuid
from dataclasses import dataclass, field
from typing import List, Literal, Optional

from ..adapters.github_client import GitHubClient
from ..adapters.llm_client import LLMClient, parse_structured_output
from ..adapters.notifier import Notifier, safe_notify
from ..config import Settings, get_settings
from ..logging import get_logger, log_audit_event
from ..models.artifacts import GeneratedTestArtifact
from ..models.ci import CheckRun, CIFailureInfo
from ..models.execution import ChangeContext
from .validators import SyntaxValidator

logger = get_logger(__name__)

FixStatus = Literal['fixed', 'needs_human', 'unfixable']

MAX_LOG_CHARS_PER_FAILURE = 3000

FIX_SYSTEM_PROMPT = """You are an expert test engineer fixing failing automated tests.

Analyze the CI failure logs and fix the test code. Common causes:
1. Incorrect selectors (elements not found)
2. Timing issues (missing waits, short timeouts)
3. API mock issues
4. Assertion errors (wrong expected values)
5. Import or syntax errors

Respond with JSON:
{
  "canFix": true,
  "analysis": "Brief explanation of what is wrong",
  "fixedTest": {
    "filename": "path/to/test.spec.ts",
    "code": "complete fixed test code",
    "framework": "playwright",
    "type": "e2e",
    "changes": ["list of changes made"]
  }
}

If the failure needs a human decision or is an infrastructure problem, set canFix to false."""


@dataclass(slots=True)
class FixAttempt:
    attempt: int
    success: bool
    fix: Optional[GeneratedTestArtifact] = None
    error: Optional[str] = None


@dataclass(slots=True)
class AutoFixResult:
    """Outcome of a single remediation invocation."""

    success: bool = False
    attempts: List[FixAttempt] = field(default_factory=list)
    final_status: FixStatus = 'needs_human'
    message: str = ''


class CIAutoFixer:
    """Asks the LLM for a corrected test and pushes it to the companion PR."""

    def __init__(
        self,
        github: GitHubClient,
        llm: LLMClient,
        validator: SyntaxValidator,
        notifier: Notifier,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.github = github
        self.llm = llm
        self.validator = validator
        self.notifier = notifier

    async def attempt_fix(
        self,
        context: ChangeContext,
        pr_number: int,
        failing_checks: List[CheckRun],
        original_artifacts: List[GeneratedTestArtifact],
    ) -> AutoFixResult:
        """Try to repair the failing tests of a companion PR.

        Failure details are gathered once; fix generation is retried up to
        ``max_fix_attempts`` times. Returns as soon as one fix is committed.
        """
        result = AutoFixResult()
        max_attempts = self.settings.max_fix_attempts

        logger.info("Starting auto-fix", pr_number=pr_number, failed_checks=len(failing_checks))

        failures = await self.github.get_failure_details(pr_number, failing_checks)
        if not failures:
            logger.warning("No failure logs available, cannot auto-fix", pr_number=pr_number)
            result.final_status = 'unfixable'
            result.message = "Could not retrieve CI logs"
            return result

        for attempt in range(1, max_attempts + 1):
            logger.info("Auto-fix attempt", attempt=attempt, max_attempts=max_attempts)
            try:
                fix = await self._generate_fix(failures, original_artifacts)
                if fix is None:
                    result.attempts.append(FixAttempt(attempt=attempt, success=False, error="Could not generate fix"))
                    continue

                await self._apply_fix(context, pr_number, fix)

            except Exception as e:
                logger.error("Auto-fix attempt failed", attempt=attempt, error=str(e))
                result.attempts.append(FixAttempt(attempt=attempt, success=False, error=str(e)))
                continue

            result.attempts.append(FixAttempt(attempt=attempt, success=True, fix=fix))
            result.success = True
            result.final_status = 'fixed'
            result.message = f"Fix applied on attempt {attempt}. CI will re-run."
            await self._notify(context, pr_number, attempt, success=True)
            return result

        result.final_status = 'needs_human'
        result.message = f"Auto-fix failed after {max_attempts} attempts. Human intervention required."
        await self._notify(context, pr_number, max_attempts, success=False)
        return result

    async def _generate_fix(
        self,
        failures: List[CIFailureInfo],
        original_artifacts: List[GeneratedTestArtifact],
    ) -> Optional[GeneratedTestArtifact]:
        failure_context = "\n---\n".join(
            f"Check: {f.check_name}\n"
            f"Error: {f.error_message or 'Unknown error'}\n"
            f"Failed Tests: {', '.join(f.failed_tests) or 'Unknown'}\n"
            f"Logs:\n{f.logs[:MAX_LOG_CHARS_PER_FAILURE]}"
            for f in failures
        )
        tests_context = "\n".join(
            f"File: {a.filename}\nFramework: {a.framework}\nCode:\n```\n{a.code}\n```"
            for a in original_artifacts
        )
        user_prompt = (
            f"## CI Failures\n\n{failure_context}\n\n"
            f"## Original Test Files\n\n{tests_context}\n\n"
            "Analyze the failures and provide a fix."
        )

        content = await self.llm.infer(FIX_SYSTEM_PROMPT, user_prompt, structured_output=True)
        parsed = parse_structured_output(content)
        if parsed is None:
            logger.warning("Fix response was not valid JSON")
            return None

        fixed = parsed.get('fixedTest')
        if not parsed.get('canFix') or not isinstance(fixed, dict):
            logger.info("LLM determined issue is unfixable", analysis=parsed.get('analysis'))
            return None
        if not fixed.get('filename') or not fixed.get('code'):
            logger.warning("Fix response is missing filename or code")
            return None

        fix = GeneratedTestArtifact(
            id=str(uuid.uuid4()),
            filename=str(fixed['filename']),
            framework=str(fixed.get('framework') or 'playwright'),
            kind=fixed.get('type') if fixed.get('type') in ('unit', 'integration', 'e2e', 'api') else 'test',
            code=str(fixed['code']),
        )

        report = self.validator.validate(fix.filename, fix.code)
        fix.attach_validation(report)
        if not report.valid:
            logger.warning(
                "Generated fix failed validation",
                filename=fix.filename,
                errors=[e.message for e in report.errors],
            )
            return None
        return fix

    async def _apply_fix(self, context: ChangeContext, pr_number: int, fix: GeneratedTestArtifact) -> None:
        pr = await self.github.get_pull_request(pr_number)
        branch = pr['head']['ref']

        path = fix.filename
        if self.settings.test_output_dir and not path.startswith(self.settings.test_output_dir):
            path = posixpath.join(self.settings.test_output_dir, path)

        commit = await self.github.commit_files(
            branch,
            {path: fix.code},
            f"fix(tests): auto-fix failing test {posixpath.basename(path)}",
        )
        log_audit_event(
            logger,
            event="auto_fix_committed",
            actor="riskgate",
            action="commit",
            resource=f"{context.repository}#{pr_number}",
            status="success",
            sha=commit.sha,
        )

        await self.github.create_comment(
            pr_number,
            "## Auto-Fix Applied\n\n"
            "A CI failure was detected and a fix was committed automatically.\n\n"
            "### Changes Made\n"
            f"- File: `{path}`\n"
            f"- Framework: {fix.framework}\n\n"
            "CI will re-run on the new commit.",
        )

    async def _notify(self, context: ChangeContext, pr_number: int, attempts: int, *, success: bool) -> None:
        if not self.settings.notify_on.ci_failure:
            return
        if success:
            title = "Auto-fix applied"
            message = f"Fixed failing tests on test PR #{pr_number} for {context.repository}."
        else:
            title = "Auto-fix failed"
            message = f"Could not fix failing tests on test PR #{pr_number} after {attempts} attempts."
        await safe_notify(
            self.notifier,
            title,
            message,
            {"Repository": context.repository, "Test PR": f"#{pr_number}", "Attempts": str(attempts)},
        )
