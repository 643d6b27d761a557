"""GitHub REST client for branches, commits, companion PRs and checks."""

import asyncio
import base64
import re
from typing import Any, Dict, List, Mapping, Optional

import aiohttp
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from ..config import get_settings
from ..logging import get_logger, log_github_call
from ..models.ci import CheckRun, CICheckOutcome, CIFailureInfo
from ..models.execution import BranchInfo, CommitResult, CompanionPullRequest

logger = get_logger(__name__)

MAX_LOG_CHARS = 5000


class GitHubAPIError(RuntimeError):
    """A GitHub API call returned an error status."""

    def __init__(self, message: str, *, status: Optional[int] = None, path: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.path = path

    @property
    def retryable(self) -> bool:
        return self.status is None or self.status >= 500 or self.status == 429


class GitHubNotFoundError(GitHubAPIError):
    """The requested resource does not exist (404)."""


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, GitHubAPIError):
        return exc.retryable
    return isinstance(exc, (aiohttp.ClientError, asyncio.TimeoutError))


class GitHubClient:
    """GitHub client bound to one repository."""

    def __init__(
        self,
        owner: str,
        repo: str,
        *,
        token: Optional[str] = None,
        api_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        """Initialize the GitHub client."""
        settings = get_settings()
        self.owner = owner
        self.repo = repo
        self._token = token or settings.github_token
        self._api_url = (api_url or settings.github_api_url).rstrip('/')
        self._timeout = timeout or settings.github_timeout

        if not self._token:
            raise ValueError("GitHub token not configured")

    @property
    def repository(self) -> str:
        return f"{self.owner}/{self.repo}"

    def _repo_path(self, suffix: str = '') -> str:
        return f"/repos/{self.owner}/{self.repo}{suffix}"

    @retry(
        retry=retry_if_exception(_is_retryable),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=4, max=10),
        reraise=True
    )
    async def _request(
        self,
        method: str,
        path: str,
        *,
        payload: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Make a call to the GitHub API and return the decoded JSON body."""
        headers = {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

        log_github_call(logger, method=method, path=path, payload=payload)

        async with aiohttp.ClientSession(
            headers=headers,
            timeout=aiohttp.ClientTimeout(total=self._timeout),
        ) as session:
            async with session.request(
                method,
                f"{self._api_url}{path}",
                json=payload,
                params=params,
            ) as response:
                if response.status == 404:
                    raise GitHubNotFoundError(f"Not found: {path}", status=404, path=path)
                if response.status >= 400:
                    text = await response.text()
                    raise GitHubAPIError(
                        f"GitHub {method} {path} failed with {response.status}: {text[:200]}",
                        status=response.status,
                        path=path,
                    )
                if response.status == 204:
                    return None
                return await response.json(content_type=None)

    # ------------------------------------------------------------------
    # Repository snapshot
    # ------------------------------------------------------------------

    async def read_file(self, path: str) -> Optional[str]:
        """Return a file's text, or None if it does not exist."""
        try:
            data = await self._request("GET", self._repo_path(f"/contents/{path}"))
        except GitHubNotFoundError:
            return None

        if not isinstance(data, dict) or 'content' not in data:
            return None
        return base64.b64decode(data['content']).decode('utf-8', errors='replace')

    async def list_dir(self, path: str) -> Optional[List[str]]:
        """Return the file paths directly under a directory, or None if absent."""
        try:
            data = await self._request("GET", self._repo_path(f"/contents/{path}"))
        except GitHubNotFoundError:
            return None

        if not isinstance(data, list):
            return None
        return [item['path'] for item in data if item.get('type') == 'file']

    # ------------------------------------------------------------------
    # Branches and commits
    # ------------------------------------------------------------------

    async def get_default_branch(self) -> BranchInfo:
        """Get the default branch name and its tip commit."""
        repo = await self._request("GET", self._repo_path())
        name = repo['default_branch']
        ref = await self._request("GET", self._repo_path(f"/git/ref/heads/{name}"))
        return BranchInfo(name=name, sha=ref['object']['sha'])

    async def get_pull_request(self, pull_number: int) -> Dict[str, Any]:
        return await self._request("GET", self._repo_path(f"/pulls/{pull_number}"))

    async def get_head_commit(self, pull_number: int) -> str:
        """Get the head commit SHA of a pull request."""
        pr = await self.get_pull_request(pull_number)
        return pr['head']['sha']

    async def create_branch(self, name: str, base_sha: str) -> BranchInfo:
        """Create a branch, reusing it if it already exists."""
        try:
            existing = await self._request("GET", self._repo_path(f"/git/ref/heads/{name}"))
            logger.info("Branch already exists, reusing", branch=name)
            return BranchInfo(name=name, sha=existing['object']['sha'])
        except GitHubNotFoundError:
            pass

        try:
            created = await self._request(
                "POST",
                self._repo_path("/git/refs"),
                payload={"ref": f"refs/heads/{name}", "sha": base_sha},
            )
        except GitHubAPIError as e:
            # Lost a race with another writer: the ref exists now
            if e.status != 422:
                raise
            existing = await self._request("GET", self._repo_path(f"/git/ref/heads/{name}"))
            return BranchInfo(name=name, sha=existing['object']['sha'])

        logger.info("Branch created", branch=name, sha=created['object']['sha'])
        return BranchInfo(name=name, sha=created['object']['sha'])

    async def commit_files(
        self,
        branch: str,
        files: Mapping[str, str],
        message: str,
    ) -> CommitResult:
        """Commit all files as one tree, one commit and one ref update."""
        if not files:
            raise ValueError("Nothing to commit")

        ref = await self._request("GET", self._repo_path(f"/git/ref/heads/{branch}"))
        parent_sha = ref['object']['sha']
        parent = await self._request("GET", self._repo_path(f"/git/commits/{parent_sha}"))

        async def create_blob(path: str, content: str) -> Dict[str, str]:
            blob = await self._request(
                "POST",
                self._repo_path("/git/blobs"),
                payload={
                    "content": base64.b64encode(content.encode('utf-8')).decode('ascii'),
                    "encoding": "base64",
                },
            )
            return {"path": path, "mode": "100644", "type": "blob", "sha": blob['sha']}

        tree_items = await asyncio.gather(
            *[create_blob(path, content) for path, content in files.items()]
        )

        tree = await self._request(
            "POST",
            self._repo_path("/git/trees"),
            payload={"base_tree": parent['tree']['sha'], "tree": list(tree_items)},
        )
        commit = await self._request(
            "POST",
            self._repo_path("/git/commits"),
            payload={"message": message, "tree": tree['sha'], "parents": [parent_sha]},
        )
        await self._request(
            "PATCH",
            self._repo_path(f"/git/refs/heads/{branch}"),
            payload={"sha": commit['sha']},
        )

        logger.info(
            "Files committed",
            sha=commit['sha'],
            branch=branch,
            files_count=len(files),
        )

        return CommitResult(sha=commit['sha'], branch=branch, files_committed=list(files))

    # ------------------------------------------------------------------
    # Pull requests and checks
    # ------------------------------------------------------------------

    async def open_companion_pr(
        self,
        *,
        title: str,
        body: str,
        head: str,
        base: str,
    ) -> CompanionPullRequest:
        """Open the pull request carrying generated tests."""
        pr = await self._request(
            "POST",
            self._repo_path("/pulls"),
            payload={"title": title, "body": body, "head": head, "base": base},
        )
        return CompanionPullRequest(number=pr['number'], url=pr['html_url'], branch=head)

    async def create_comment(self, issue_number: int, body: str) -> None:
        await self._request(
            "POST",
            self._repo_path(f"/issues/{issue_number}/comments"),
            payload={"body": body},
        )

    async def _list_check_runs(self, pr_number: int) -> List[Dict[str, Any]]:
        head_sha = await self.get_head_commit(pr_number)
        data = await self._request(
            "GET",
            self._repo_path(f"/commits/{head_sha}/check-runs"),
            params={"per_page": 100},
        )
        return data.get('check_runs', [])

    async def get_check_status(self, pr_number: int) -> CICheckOutcome:
        """Get the aggregated CI status of a pull request head."""
        runs = await self._list_check_runs(pr_number)
        checks = [
            CheckRun(
                id=run.get('id'),
                name=run['name'],
                status=run.get('status', 'queued'),
                conclusion=run.get('conclusion'),
            )
            for run in runs
        ]
        return CICheckOutcome.from_checks(checks)

    async def get_failure_details(
        self,
        pr_number: int,
        failed_checks: List[CheckRun],
    ) -> List[CIFailureInfo]:
        """Collect annotations and output text for failing checks."""
        runs = {run['name']: run for run in await self._list_check_runs(pr_number)}
        failures: List[CIFailureInfo] = []

        for check in failed_checks:
            run = runs.get(check.name)
            if run is None:
                continue

            output = run.get('output') or {}
            logs = ''
            failed_tests: List[str] = []

            if output.get('annotations_count'):
                try:
                    annotations = await self._request(
                        "GET",
                        self._repo_path(f"/check-runs/{run['id']}/annotations"),
                    )
                except GitHubAPIError as e:
                    logger.warning("Failed to get annotations", check=check.name, error=str(e))
                    annotations = []

                for annotation in annotations:
                    logs += f"{annotation['path']}:{annotation.get('start_line')}: {annotation.get('message', '')}\n"
                    if annotation.get('annotation_level') == 'failure':
                        failed_tests.append(annotation['path'])

            if output.get('summary'):
                logs += "\n\nSummary:\n" + output['summary']
            if output.get('text'):
                logs += "\n\nDetails:\n" + output['text']

            error_match = re.search(r'(?:Error|FAIL|error):\s*(.+?)(?:\n|$)', logs, re.IGNORECASE)

            failures.append(CIFailureInfo(
                check_name=check.name,
                logs=logs[-MAX_LOG_CHARS:] or 'No detailed logs available',
                error_message=error_match.group(1) if error_match else None,
                failed_tests=sorted(set(failed_tests)),
            ))

        return failures

    async def report_unresolved_failure(self, pr_number: int, checks: List[CheckRun]) -> None:
        """Comment on the PR listing the checks that still fail."""
        lines = [
            "## CI Failures Need Human Review",
            "",
            "Automated tests in this PR are failing and could not be fixed automatically.",
            "",
            "| Check | Conclusion |",
            "|-------|------------|",
        ]
        for check in checks:
            lines.append(f"| {check.name} | {check.conclusion or check.status} |")

        await self.create_comment(pr_number, "\n".join(lines))
        logger.info("Reported unresolved CI failure", pr_number=pr_number, checks=len(checks))

    async def health_check(self) -> Dict[str, Any]:
        """Check that the token can reach the API."""
        return await self._request("GET", "/rate_limit")
