"""Detection of a repository's existing test framework and layout."""

import json
import re
from dataclasses import dataclass
from typing import Awaitable, List, Optional, Protocol, Tuple, TypeVar

from ..logging import get_logger
from ..models.artifacts import (
    ExampleType,
    TestExample,
    TestPattern,
    TestStructure,
    default_pom_structure,
)

logger = get_logger(__name__)

T = TypeVar('T')

# Ordered: first hit wins
FRAMEWORK_CONFIG_FILES: Tuple[Tuple[str, str], ...] = (
    ('playwright.config.ts', 'playwright'),
    ('playwright.config.js', 'playwright'),
    ('cypress.config.ts', 'cypress'),
    ('cypress.config.js', 'cypress'),
    ('cypress.json', 'cypress'),
    ('jest.config.ts', 'jest'),
    ('jest.config.js', 'jest'),
    ('vitest.config.ts', 'vitest'),
    ('vitest.config.js', 'vitest'),
    ('vite.config.ts', 'vitest'),
    ('pytest.ini', 'pytest'),
    ('conftest.py', 'pytest'),
)

PACKAGE_JSON_FRAMEWORKS: Tuple[Tuple[str, str], ...] = (
    ('@playwright/test', 'playwright'),
    ('cypress', 'cypress'),
    ('vitest', 'vitest'),
    ('jest', 'jest'),
)

PYTHON_MANIFESTS = ('requirements.txt', 'pyproject.toml')

PYTHON_FRAMEWORKS: Tuple[Tuple[str, str], ...] = (
    ('pytest-playwright', 'playwright'),
    ('pytest', 'pytest'),
)


@dataclass(frozen=True)
class DirectoryConvention:
    type: str
    tests: str
    pages: Optional[str] = None
    utils: Optional[str] = None


COMMON_TEST_DIRS: Tuple[DirectoryConvention, ...] = (
    # POM structure
    DirectoryConvention('pom', 'e2e/tests', 'e2e/pages', 'e2e/utils'),
    DirectoryConvention('pom', 'tests/e2e', 'tests/pages', 'tests/utils'),
    DirectoryConvention('pom', 'test/e2e', 'test/pages', 'test/utils'),
    # Playwright default
    DirectoryConvention('pom', 'tests', 'tests/pages', 'tests/utils'),
    DirectoryConvention('pom', 'e2e', 'e2e/pages', 'e2e/utils'),
    # Cypress
    DirectoryConvention('pom', 'cypress/e2e', 'cypress/support/pages', 'cypress/support'),
    DirectoryConvention('pom', 'cypress/integration', 'cypress/support/pages', 'cypress/support'),
    # Flat structure
    DirectoryConvention('flat', '__tests__'),
    DirectoryConvention('flat', 'spec'),
    DirectoryConvention('flat', 'test'),
)

EXAMPLE_FILE_PATTERN = re.compile(r'\.(ts|js|tsx|jsx|py)$')
MAX_TEST_EXAMPLES = 3
MAX_PAGE_EXAMPLES = 2
MAX_UTIL_EXAMPLES = 1
MAX_EXAMPLE_CHARS = 3000


class RepositorySnapshot(Protocol):
    """Read access to a repository.

    Both methods return None when the path does not exist and raise on
    transport or permission errors.
    """

    async def read_file(self, path: str) -> Optional[str]:
        ...

    async def list_dir(self, path: str) -> Optional[List[str]]:
        ...


async def probe(operation: Awaitable[Optional[T]], *, what: str) -> Optional[T]:
    """Run a best-effort repository read.

    Returns the value, or None when the target is missing or the read
    failed. Failures are logged; they never propagate.
    """
    try:
        result = await operation
    except Exception as e:
        logger.warning("Repository probe failed", target=what, error=str(e))
        return None

    if result is None:
        logger.debug("Repository probe found nothing", target=what)
    return result


class TestPatternDetector:
    """Infers how a repository organizes its tests."""

    async def detect(self, repo: RepositorySnapshot) -> TestPattern:
        """Detect the test pattern; never raises."""
        pattern = TestPattern()

        try:
            framework = await self._detect_framework(repo)
            if framework:
                pattern.framework, pattern.config_file = framework
                pattern.detected = True

            structure = await self._detect_structure(repo)
            if structure:
                pattern.structure = structure
                pattern.detected = True

            if pattern.detected:
                pattern.examples = await self._collect_examples(repo, pattern.structure)

        except Exception as e:
            logger.warning("Failed to detect test patterns, using defaults", error=str(e))
            pattern = TestPattern()

        logger.info(
            "Test pattern detection completed",
            detected=pattern.detected,
            framework=pattern.framework,
            structure_type=pattern.structure.type,
            examples_count=len(pattern.examples),
        )
        return pattern

    async def _detect_framework(self, repo: RepositorySnapshot) -> Optional[Tuple[str, str]]:
        for filename, framework in FRAMEWORK_CONFIG_FILES:
            if await probe(repo.read_file(filename), what=filename) is not None:
                return framework, filename

        package_json = await probe(repo.read_file('package.json'), what='package.json')
        if package_json:
            framework = self._framework_from_package_json(package_json)
            if framework:
                return framework, 'package.json'

        for manifest in PYTHON_MANIFESTS:
            content = await probe(repo.read_file(manifest), what=manifest)
            if not content:
                continue
            for dependency, framework in PYTHON_FRAMEWORKS:
                if re.search(rf'(?<![\w-]){re.escape(dependency)}(?![\w-])', content):
                    return framework, manifest

        return None

    def _framework_from_package_json(self, content: str) -> Optional[str]:
        try:
            package = json.loads(content)
        except json.JSONDecodeError:
            logger.warning("package.json is not valid JSON")
            return None
        if not isinstance(package, dict):
            return None

        all_deps = {}
        all_deps.update(package.get('dependencies') or {})
        all_deps.update(package.get('devDependencies') or {})

        for dependency, framework in PACKAGE_JSON_FRAMEWORKS:
            if dependency in all_deps:
                return framework
        return None

    async def _detect_structure(self, repo: RepositorySnapshot) -> Optional[TestStructure]:
        for convention in COMMON_TEST_DIRS:
            if await probe(repo.list_dir(convention.tests), what=convention.tests) is None:
                continue

            structure = TestStructure(type=convention.type, tests_dir=convention.tests)

            if convention.pages and await probe(repo.list_dir(convention.pages), what=convention.pages) is not None:
                structure.pages_dir = convention.pages
            if convention.utils and await probe(repo.list_dir(convention.utils), what=convention.utils) is not None:
                structure.utils_dir = convention.utils

            return structure

        return None

    async def _collect_examples(self, repo: RepositorySnapshot, structure: TestStructure) -> List[TestExample]:
        examples: List[TestExample] = []
        sources: List[Tuple[Optional[str], int, ExampleType]] = [
            (structure.tests_dir, MAX_TEST_EXAMPLES, 'test'),
            (structure.pages_dir, MAX_PAGE_EXAMPLES, 'page'),
            (structure.utils_dir, MAX_UTIL_EXAMPLES, 'util'),
        ]

        for directory, limit, example_type in sources:
            if not directory:
                continue
            files = await probe(repo.list_dir(directory), what=directory) or []
            candidates = [f for f in files if EXAMPLE_FILE_PATTERN.search(f)]

            for path in candidates[:limit]:
                content = await probe(repo.read_file(path), what=path)
                if content:
                    examples.append(TestExample(
                        path=path,
                        content=content[:MAX_EXAMPLE_CHARS],
                        type=example_type,
                    ))

        return examples
