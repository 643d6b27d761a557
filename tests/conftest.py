"""Shared fixtures and in-memory collaborators for riskgate tests."""

import json
from typing import Any, Dict, List, Optional, Union

import pytest

from riskgate.config import AutonomousSettings, Settings
from riskgate.models.ci import CheckRun, CICheckOutcome, CIFailureInfo
from riskgate.models.execution import BranchInfo, ChangeContext, CommitResult, CompanionPullRequest
from riskgate.models.findings import AnalysisFindings


class FakeRepository:
    """Repository snapshot over a dict of path -> content."""

    def __init__(self, files: Optional[Dict[str, str]] = None, broken: Optional[List[str]] = None):
        self.files = dict(files or {})
        self.broken = set(broken or [])

    async def read_file(self, path: str) -> Optional[str]:
        if path in self.broken:
            raise PermissionError(f"cannot read {path}")
        return self.files.get(path)

    async def list_dir(self, path: str) -> Optional[List[str]]:
        if path in self.broken:
            raise PermissionError(f"cannot list {path}")
        prefix = path.rstrip('/') + '/'
        under = [p for p in self.files if p.startswith(prefix)]
        if not under:
            return None
        return sorted(p for p in under if '/' not in p[len(prefix):])


class FakeLLM:
    """Returns canned responses in order; the last one repeats."""

    def __init__(self, *responses: Union[str, Dict[str, Any]]):
        self.responses = [r if isinstance(r, str) else json.dumps(r) for r in responses] or ['']
        self.calls: List[Dict[str, Any]] = []

    async def infer(self, system_prompt: str, user_prompt: str, structured_output: bool = False) -> str:
        self.calls.append({
            'system': system_prompt,
            'user': user_prompt,
            'structured_output': structured_output,
        })
        index = min(len(self.calls) - 1, len(self.responses) - 1)
        return self.responses[index]


class FakeNotifier:
    def __init__(self):
        self.sent: List[Dict[str, Any]] = []

    async def notify(self, title: str, message: str, fields: Optional[Dict[str, str]] = None) -> None:
        self.sent.append({'title': title, 'message': message, 'fields': fields or {}})

    @property
    def titles(self) -> List[str]:
        return [n['title'] for n in self.sent]


class BrokenNotifier(FakeNotifier):
    """Records every notification, then fails to deliver it."""

    async def notify(self, title: str, message: str, fields: Optional[Dict[str, str]] = None) -> None:
        await super().notify(title, message, fields)
        raise ConnectionError("sink down")


class FakeGitHub(FakeRepository):
    """GitHub client double that records every write."""

    def __init__(self, files: Optional[Dict[str, str]] = None):
        super().__init__(files)
        self.branches: List[BranchInfo] = []
        self.commits: List[Dict[str, Any]] = []
        self.pull_requests: List[Dict[str, Any]] = []
        self.comments: List[Dict[str, Any]] = []
        self.reported: List[Dict[str, Any]] = []
        self.check_results: List[Union[CICheckOutcome, Exception]] = [CICheckOutcome(status='pending')]
        self.check_calls = 0
        self.failure_details: List[CIFailureInfo] = [
            CIFailureInfo(check_name='e2e', logs="Error: locator not found", error_message="locator not found"),
        ]
        self.fail_on: Optional[str] = None

    def _maybe_fail(self, operation: str) -> None:
        if self.fail_on == operation:
            raise RuntimeError(f"{operation} exploded")

    async def get_default_branch(self) -> BranchInfo:
        self._maybe_fail('get_default_branch')
        return BranchInfo(name='main', sha='base-sha')

    async def get_head_commit(self, pull_number: int) -> str:
        return 'head-sha'

    async def create_branch(self, name: str, base_sha: str) -> BranchInfo:
        self._maybe_fail('create_branch')
        branch = BranchInfo(name=name, sha=base_sha)
        self.branches.append(branch)
        return branch

    async def commit_files(self, branch: str, files: Dict[str, str], message: str) -> CommitResult:
        self._maybe_fail('commit_files')
        self.commits.append({'branch': branch, 'files': dict(files), 'message': message})
        for path, content in files.items():
            self.files[path] = content
        return CommitResult(sha=f"commit-{len(self.commits)}", branch=branch, files_committed=list(files))

    async def open_companion_pr(self, *, title: str, body: str, head: str, base: str) -> CompanionPullRequest:
        self._maybe_fail('open_companion_pr')
        number = 100 + len(self.pull_requests) + 1
        self.pull_requests.append({'number': number, 'title': title, 'body': body, 'head': head, 'base': base})
        return CompanionPullRequest(number=number, url=f"https://github.com/acme/shop/pull/{number}", branch=head)

    async def get_pull_request(self, pull_number: int) -> Dict[str, Any]:
        for pr in self.pull_requests:
            if pr['number'] == pull_number:
                return {'number': pull_number, 'head': {'ref': pr['head'], 'sha': 'head-sha'}}
        return {'number': pull_number, 'head': {'ref': f"riskgate/tests-pr-{pull_number}", 'sha': 'head-sha'}}

    async def create_comment(self, issue_number: int, body: str) -> None:
        self.comments.append({'issue_number': issue_number, 'body': body})

    async def get_check_status(self, pr_number: int) -> CICheckOutcome:
        index = min(self.check_calls, len(self.check_results) - 1)
        self.check_calls += 1
        result = self.check_results[index]
        if isinstance(result, Exception):
            raise result
        return result

    async def get_failure_details(self, pr_number: int, failed_checks: List[CheckRun]) -> List[CIFailureInfo]:
        return list(self.failure_details)

    async def report_unresolved_failure(self, pr_number: int, checks: List[CheckRun]) -> None:
        self.reported.append({'pr_number': pr_number, 'checks': [c.name for c in checks]})


VALID_SPEC = """import { test, expect } from '@playwright/test';
import { LoginPage } from '../pages/login.page';

test('user can log in', async ({ page }) => {
  const login = new LoginPage(page);
  await page.goto('/login');
  await login.submit('user@example.com', `secret-${Date.now()}`);
  await expect(page.getByRole('heading')).toHaveText('Dashboard');
});
"""

VALID_PAGE = """import { Page } from '@playwright/test';

export class LoginPage {
  constructor(private readonly page: Page) {}

  async submit(email: string, password: string) {
    await this.page.getByLabel('Email').fill(email);
    await this.page.getByLabel('Password').fill(password);
    await this.page.getByRole('button', { name: 'Sign in' }).click();
  }
}
"""

BROKEN_SPEC = """import { test, expect } from '@playwright/test';

test('broken', async ({ page }) => {
  await page.goto('/cart');
  expect(page.getByText('Total')).toBeVisible(;
"""


@pytest.fixture
def valid_spec() -> str:
    return VALID_SPEC


@pytest.fixture
def valid_page() -> str:
    return VALID_PAGE


@pytest.fixture
def broken_spec() -> str:
    return BROKEN_SPEC


@pytest.fixture
def settings() -> Settings:
    """Settings with autonomous execution on and no CI delays."""
    return Settings(
        _env_file=None,
        github_token="test-token",
        claude_api_key="test-key",
        slack_webhook_url=None,
        test_output_dir="",
        ci_initial_delay_seconds=0,
        ci_poll_interval_seconds=0,
        ci_max_checks=3,
        autonomous=AutonomousSettings(enabled=True),
    )


@pytest.fixture
def context() -> ChangeContext:
    return ChangeContext(
        owner="acme",
        repo="shop",
        pull_number=42,
        title="Add checkout discount codes",
        body="Lets customers apply a discount code at checkout.",
        diff="diff --git a/src/checkout.ts b/src/checkout.ts\n+applyDiscount(code)\n",
    )


@pytest.fixture
def findings() -> AnalysisFindings:
    return AnalysisFindings.from_dict({
        'overallRisk': 'high',
        'risks': [
            {'level': 'high', 'area': 'checkout', 'title': 'Discount can go negative'},
            {'level': 'medium', 'area': 'pricing', 'title': 'Rounding on totals'},
        ],
        'gaps': [
            {'severity': 'medium', 'title': 'No tests for expired codes'},
        ],
        'scenarios': [
            {
                'id': 'TS001',
                'title': 'Apply a valid discount code',
                'priority': 'critical',
                'testType': 'e2e',
                'steps': ['Open checkout', 'Enter code SAVE10', 'Submit'],
                'expectedResult': 'Total is reduced by 10%',
            },
            {
                'id': 'TS002',
                'title': 'Reject an expired code',
                'priority': 'high',
                'testType': 'e2e',
                'steps': ['Enter code OLD', 'Submit'],
                'expectedResult': 'An error is shown',
            },
        ],
    })


@pytest.fixture
def fake_repository():
    return FakeRepository


@pytest.fixture
def fake_github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture
def fake_llm():
    return FakeLLM


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def broken_notifier() -> BrokenNotifier:
    return BrokenNotifier()


def failing_outcome(*names: str) -> CICheckOutcome:
    return CICheckOutcome.from_checks([CheckRun(name=name, conclusion='failure') for name in names or ('e2e',)])


@pytest.fixture
def ci_outcomes():
    """Factories for CI outcomes: pending, success and failure."""
    return {
        'pending': CICheckOutcome(status='pending'),
        'success': CICheckOutcome.from_checks([CheckRun(name='e2e', conclusion='success')]),
        'failure': failing_outcome('e2e'),
    }


def pom_response(*files: Dict[str, str]) -> Dict[str, Any]:
    return {'files': list(files), 'dependencies': ['@playwright/test']}


@pytest.fixture
def pom_payload():
    return pom_response
