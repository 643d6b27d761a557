"""Unit tests for CI auto-fix."""

import pytest

from riskgate.models.artifacts import GeneratedTestArtifact
from riskgate.models.ci import CheckRun
from riskgate.orchestrator.fixer import CIAutoFixer
from riskgate.orchestrator.validators import DefaultSyntaxValidator

FAILING = [CheckRun(name='e2e', conclusion='failure')]


def original(code):
    return [GeneratedTestArtifact(
        id='POM001', filename='e2e/tests/checkout.spec.ts', framework='playwright', kind='test', code=code,
    )]


def fix_response(code, filename='e2e/tests/checkout.spec.ts'):
    return {
        'canFix': True,
        'analysis': 'Selector changed',
        'fixedTest': {'filename': filename, 'code': code, 'framework': 'playwright', 'type': 'e2e'},
    }


class TestCIAutoFixer:
    """Test cases for CIAutoFixer."""

    @pytest.fixture
    def make_fixer(self, settings, fake_github, notifier):
        def build(llm):
            return CIAutoFixer(fake_github, llm, DefaultSyntaxValidator(), notifier, settings)
        return build

    @pytest.mark.asyncio
    async def test_fix_is_committed_to_pr_branch(
        self, make_fixer, fake_github, fake_llm, notifier, context, valid_spec,
    ):
        """Test a successful fix on the first attempt."""
        fake_github.pull_requests.append({'number': 101, 'head': 'riskgate/tests-pr-42-x'})
        llm = fake_llm(fix_response(valid_spec))

        result = await make_fixer(llm).attempt_fix(context, 101, FAILING, original(valid_spec))

        assert result.success is True
        assert result.final_status == 'fixed'
        assert len(result.attempts) == 1
        assert result.attempts[0].fix.filename == 'e2e/tests/checkout.spec.ts'

        commit = fake_github.commits[0]
        assert commit['branch'] == 'riskgate/tests-pr-42-x'
        assert commit['files'] == {'e2e/tests/checkout.spec.ts': valid_spec}
        assert fake_github.comments[0]['issue_number'] == 101
        assert 'Auto-Fix Applied' in fake_github.comments[0]['body']
        assert notifier.titles == ['Auto-fix applied']

        prompt = llm.calls[0]['user']
        assert 'locator not found' in prompt
        assert 'e2e/tests/checkout.spec.ts' in prompt

    @pytest.mark.asyncio
    async def test_invalid_fix_is_retried(
        self, make_fixer, fake_github, fake_llm, context, valid_spec, broken_spec,
    ):
        llm = fake_llm(fix_response(broken_spec), fix_response(valid_spec))

        result = await make_fixer(llm).attempt_fix(context, 101, FAILING, original(valid_spec))

        assert result.success is True
        assert [a.success for a in result.attempts] == [False, True]
        assert len(fake_github.commits) == 1

    @pytest.mark.asyncio
    async def test_unfixable_after_all_attempts(self, make_fixer, fake_github, fake_llm, notifier, context, valid_spec):
        """Test that the model declining every attempt needs a human."""
        llm = fake_llm({'canFix': False, 'analysis': 'Infrastructure outage'})

        result = await make_fixer(llm).attempt_fix(context, 101, FAILING, original(valid_spec))

        assert result.success is False
        assert result.final_status == 'needs_human'
        assert len(result.attempts) == 3
        assert len(llm.calls) == 3
        assert fake_github.commits == []
        assert notifier.titles == ['Auto-fix failed']

    @pytest.mark.asyncio
    async def test_no_failure_details(self, make_fixer, fake_github, fake_llm, context, valid_spec):
        fake_github.failure_details = []
        llm = fake_llm(fix_response(valid_spec))

        result = await make_fixer(llm).attempt_fix(context, 101, FAILING, original(valid_spec))

        assert result.final_status == 'unfixable'
        assert llm.calls == []

    @pytest.mark.asyncio
    async def test_commit_error_counts_as_failed_attempt(
        self, make_fixer, fake_github, fake_llm, settings, context, valid_spec,
    ):
        settings.max_fix_attempts = 2
        fake_github.fail_on = 'commit_files'
        llm = fake_llm(fix_response(valid_spec))

        result = await make_fixer(llm).attempt_fix(context, 101, FAILING, original(valid_spec))

        assert result.success is False
        assert [a.error for a in result.attempts] == ['commit_files exploded', 'commit_files exploded']

    @pytest.mark.asyncio
    async def test_output_dir_prefix(self, make_fixer, fake_github, fake_llm, settings, context, valid_spec):
        settings.test_output_dir = 'generated'
        llm = fake_llm(fix_response(valid_spec))

        await make_fixer(llm).attempt_fix(context, 101, FAILING, original(valid_spec))

        assert list(fake_github.commits[0]['files']) == ['generated/e2e/tests/checkout.spec.ts']

    @pytest.mark.asyncio
    async def test_notifier_errors_keep_committed_fix(
        self, settings, fake_github, fake_llm, broken_notifier, context, valid_spec,
    ):
        """Test that a failing notification sink does not undo a committed fix."""
        fixer = CIAutoFixer(fake_github, fake_llm(fix_response(valid_spec)), DefaultSyntaxValidator(), broken_notifier, settings)

        result = await fixer.attempt_fix(context, 101, FAILING, original(valid_spec))

        assert result.success is True
        assert result.final_status == 'fixed'
        assert len(fake_github.commits) == 1
        assert broken_notifier.titles == ['Auto-fix applied']
