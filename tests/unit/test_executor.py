"""Unit tests for autonomous execution."""

import re
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from riskgate.models.artifacts import GeneratedTestArtifact, TestGenerationResult, TestPattern, ValidationSummary
from riskgate.orchestrator.executor import AutonomousExecutor, build_commit_message, generate_test_branch_name

BRANCH_PATTERN = re.compile(r'^riskgate/tests-pr-42-\d{8}T\d{12}Z$')


def generation(*filenames):
    artifacts = [
        GeneratedTestArtifact(
            id=f"POM{i:03d}", filename=name, framework='playwright', kind='test', code=f"// {name}",
        )
        for i, name in enumerate(filenames, start=1)
    ]
    return TestGenerationResult(
        artifacts=artifacts,
        pattern=TestPattern(),
        validation_summary=ValidationSummary(total_tests=len(artifacts), valid_tests=len(artifacts)),
    )


def make_generator(result):
    generator = MagicMock()
    generator.generate = AsyncMock(return_value=result)
    return generator


class TestBranchNaming:
    def test_branch_name_format(self):
        now = datetime(2026, 10, 19, 10, 11, 12, 123456, tzinfo=timezone.utc)

        assert generate_test_branch_name('riskgate', 42, now) == 'riskgate/tests-pr-42-20261019T101112123456Z'

    def test_branch_names_are_unique(self):
        assert BRANCH_PATTERN.match(generate_test_branch_name('riskgate', 42))

    def test_commit_message(self, context):
        message = build_commit_message(context, generation('e2e/tests/a.spec.ts').artifacts)

        assert message.startswith('test: add automated tests for PR #42')
        assert '- e2e/tests/a.spec.ts (playwright)' in message
        assert 'Triggered by: Add checkout discount codes' in message


class TestAutonomousExecutor:
    """Test cases for AutonomousExecutor."""

    @pytest.mark.asyncio
    async def test_disabled_is_a_no_op(self, settings, findings, context, fake_github):
        settings.autonomous.enabled = False
        generator = make_generator(generation('a.spec.ts'))
        executor = AutonomousExecutor(fake_github, generator, settings=settings)

        result = await executor.execute(findings, context)

        assert result.artifacts == []
        assert result.errors == []
        generator.generate.assert_not_awaited()
        assert fake_github.branches == []

    @pytest.mark.asyncio
    async def test_no_artifacts_is_a_no_op(self, settings, findings, context, fake_github):
        executor = AutonomousExecutor(fake_github, make_generator(generation()), settings=settings)

        result = await executor.execute(findings, context)

        assert result.succeeded is True
        assert result.artifacts == []
        assert fake_github.branches == []

    @pytest.mark.asyncio
    async def test_full_run_schedules_monitoring(self, settings, findings, context, fake_github):
        """Test branch, commit, companion PR and monitoring in order."""
        settings.test_output_dir = 'generated'
        monitor = MagicMock()
        executor = AutonomousExecutor(
            fake_github,
            make_generator(generation('e2e/tests/a.spec.ts', 'e2e/pages/a.page.ts')),
            monitor=monitor,
            settings=settings,
        )

        result = await executor.execute(findings, context)

        assert result.errors == []
        assert len(fake_github.branches) == 1
        branch = fake_github.branches[0]
        assert BRANCH_PATTERN.match(branch.name)
        assert branch.sha == 'base-sha'

        assert len(fake_github.commits) == 1
        commit = fake_github.commits[0]
        assert commit['branch'] == branch.name
        assert set(commit['files']) == {'generated/e2e/tests/a.spec.ts', 'generated/e2e/pages/a.page.ts'}

        pr = fake_github.pull_requests[0]
        assert pr['head'] == branch.name
        assert pr['base'] == 'main'
        assert '#42' in pr['title']

        assert result.companion_pr.number == pr['number']
        assert result.monitoring_scheduled is True
        monitor.schedule.assert_called_once_with(context, pr['number'], result.artifacts)

    @pytest.mark.asyncio
    async def test_pr_head_strategy(self, settings, findings, context, fake_github):
        settings.autonomous.base_branch_strategy = 'pr-head'
        executor = AutonomousExecutor(fake_github, make_generator(generation('a.spec.ts')), settings=settings)

        result = await executor.execute(findings, context)

        assert result.errors == []
        assert fake_github.branches[0].sha == 'head-sha'
        assert fake_github.pull_requests[0]['base'] == 'main'

    @pytest.mark.asyncio
    async def test_without_pr_creation(self, settings, findings, context, fake_github):
        settings.autonomous.create_pr = False
        monitor = MagicMock()
        executor = AutonomousExecutor(
            fake_github, make_generator(generation('a.spec.ts')), monitor=monitor, settings=settings,
        )

        result = await executor.execute(findings, context)

        assert len(fake_github.commits) == 1
        assert fake_github.pull_requests == []
        assert result.companion_pr is None
        monitor.schedule.assert_not_called()

    @pytest.mark.asyncio
    async def test_monitoring_disabled(self, settings, findings, context, fake_github):
        settings.autonomous.monitor_ci = False
        monitor = MagicMock()
        executor = AutonomousExecutor(
            fake_github, make_generator(generation('a.spec.ts')), monitor=monitor, settings=settings,
        )

        result = await executor.execute(findings, context)

        assert result.companion_pr is not None
        assert result.monitoring_scheduled is False
        monitor.schedule.assert_not_called()

    @pytest.mark.asyncio
    async def test_step_failure_is_recorded_and_aborts(self, settings, findings, context, fake_github):
        """Test that a failing commit stops the run without raising."""
        fake_github.fail_on = 'commit_files'
        monitor = MagicMock()
        executor = AutonomousExecutor(
            fake_github, make_generator(generation('a.spec.ts')), monitor=monitor, settings=settings,
        )

        result = await executor.execute(findings, context)

        assert len(result.errors) == 1
        assert result.errors[0].startswith('commit tests:')
        assert 'commit_files exploded' in result.errors[0]
        assert len(result.artifacts) == 1
        assert fake_github.pull_requests == []
        monitor.schedule.assert_not_called()

    @pytest.mark.asyncio
    async def test_generation_failure_is_recorded(self, settings, findings, context, fake_github):
        generator = MagicMock()
        generator.generate = AsyncMock(side_effect=RuntimeError("model unavailable"))
        executor = AutonomousExecutor(fake_github, generator, settings=settings)

        result = await executor.execute(findings, context)

        assert result.errors == ['generate tests: model unavailable']
        assert fake_github.branches == []

    @pytest.mark.asyncio
    async def test_snapshot_defaults_to_github(self, settings, findings, context, fake_github):
        generator = make_generator(generation())
        executor = AutonomousExecutor(fake_github, generator, settings=settings)

        await executor.execute(findings, context)

        assert generator.generate.await_args.args[2] is fake_github
