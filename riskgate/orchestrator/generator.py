"""Test generation: pattern detection, LLM synthesis and validation."""

import os
from pathlib import Path
from typing import Any, List, Optional

import anyio

from ..adapters.llm_client import LLMClient, parse_structured_output
from ..config import Settings, get_settings
from ..logging import get_logger
from ..models.artifacts import (
    GeneratedTestArtifact,
    TestGenerationResult,
    TestPattern,
    default_pom_structure,
)
from ..models.execution import ChangeContext
from ..models.findings import AnalysisFindings, TestScenario
from .pattern_detector import RepositorySnapshot, TestPatternDetector
from .summaries import format_pattern_summary
from .validators import SyntaxValidator, resolve_validator, validate_batch

logger = get_logger(__name__)

POM_SCENARIO_LIMIT = 8
FLAT_SCENARIO_LIMIT = 10
MAX_DIFF_CHARS = 5000
PRIORITY_RANK = {'critical': 0, 'high': 1, 'medium': 2, 'low': 3}
VALID_KINDS = ('unit', 'integration', 'e2e', 'api', 'page', 'util', 'test')

POM_SYSTEM_PROMPT = """You are a senior test automation engineer. Generate end-to-end tests using the Page Object Model.

Rules:
- One page object per page involved in the scenarios, placed in the pages directory.
- Test files only talk to pages through page objects; no raw selectors in tests.
- Shared helpers go in the utils directory.
- Follow the style of any existing code examples exactly.
- Write complete, runnable files. No placeholders.

Respond with JSON:
{
  "files": [
    {"path": "e2e/pages/login.page.ts", "type": "page", "content": "..."},
    {"path": "e2e/tests/login.spec.ts", "type": "test", "content": "..."}
  ],
  "dependencies": ["@playwright/test"]
}"""

FLAT_SYSTEM_PROMPT = """You are a test code generator. Generate test code in JSON format:

{
  "tests": [
    {
      "id": "TC001",
      "filename": "feature.spec.ts",
      "framework": "playwright",
      "type": "e2e",
      "code": "// test code",
      "dependencies": ["@playwright/test"]
    }
  ]
}

Write complete, runnable test files. Follow the conventions of the target repository."""


def select_scenarios(
    scenarios: List[TestScenario],
    *,
    limit: int,
    include_e2e: bool,
) -> List[TestScenario]:
    """Pick the scenarios worth generating, critical first."""
    eligible = [
        s for s in scenarios
        if s.priority in ('critical', 'high') or (include_e2e and s.test_type == 'e2e')
    ]
    eligible.sort(key=lambda s: PRIORITY_RANK.get(s.priority, len(PRIORITY_RANK)))
    return eligible[:limit]


def format_scenario_for_prompt(scenario: TestScenario) -> str:
    steps = "\n".join(f"  {i}. {step}" for i, step in enumerate(scenario.steps, start=1))
    return (
        f"#### {scenario.id}: {scenario.title}\n"
        f"- **Category:** {scenario.category}\n"
        f"- **Priority:** {scenario.priority}\n"
        f"- **Test Type:** {scenario.test_type}\n"
        f"- **Preconditions:** {', '.join(scenario.preconditions) or 'None'}\n"
        f"- **Steps:**\n{steps}\n"
        f"- **Expected Result:** {scenario.expected_result}"
    )


class TestGenerationOrchestrator:
    """Produces validated test artifacts for an analyzed change."""

    def __init__(
        self,
        llm: LLMClient,
        *,
        detector: Optional[TestPatternDetector] = None,
        validator: Optional[SyntaxValidator] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.llm = llm
        self.detector = detector or TestPatternDetector()
        self.validator = validator or resolve_validator(self.settings)

    async def generate(
        self,
        findings: AnalysisFindings,
        context: ChangeContext,
        repo: RepositorySnapshot,
    ) -> TestGenerationResult:
        """Detect the pattern, generate candidates and keep the valid ones."""
        logger.info("Starting test generation", scenario_count=len(findings.scenarios))

        pattern = await self.detector.detect(repo)

        if pattern.structure.type == 'pom' or not pattern.detected:
            candidates = await self._generate_pom_tests(findings, context, pattern)
        else:
            candidates = await self._generate_flat_tests(findings, context, pattern)

        logger.info("Validating generated tests", test_count=len(candidates))
        summary = validate_batch(candidates, self.validator)

        valid = [a for a in candidates if a.is_valid]
        invalid = [a for a in candidates if not a.is_valid]

        if invalid:
            logger.warning(
                "Some generated tests failed validation and will be excluded",
                invalid_count=len(invalid),
                invalid_files=[a.filename for a in invalid],
            )

        logger.info(
            "Tests generated and validated",
            test_count=len(valid),
            total=summary.total_tests,
            invalid=summary.invalid_tests,
        )

        return TestGenerationResult(artifacts=valid, pattern=pattern, validation_summary=summary)

    # ------------------------------------------------------------------
    # Page-object generation
    # ------------------------------------------------------------------

    async def _generate_pom_tests(
        self,
        findings: AnalysisFindings,
        context: ChangeContext,
        pattern: TestPattern,
    ) -> List[GeneratedTestArtifact]:
        user_prompt = self._build_pom_prompt(findings, context, pattern)
        content = await self.llm.infer(POM_SYSTEM_PROMPT, user_prompt, structured_output=True)

        parsed = parse_structured_output(content)
        if parsed is None or not isinstance(parsed.get('files', []), list):
            logger.error("Failed to parse POM generation response", response_chars=len(content or ''))
            return []

        framework = pattern.framework if pattern.framework != 'unknown' else self.settings.test_frameworks.e2e
        dependencies = parsed.get('dependencies')
        if not isinstance(dependencies, list):
            dependencies = ['@playwright/test']

        artifacts = []
        for index, file in enumerate(parsed.get('files', []), start=1):
            if not isinstance(file, dict) or not file.get('path') or not file.get('content'):
                logger.warning("Skipping malformed generated file", index=index)
                continue
            kind = file.get('type') if file.get('type') in VALID_KINDS else 'test'
            artifacts.append(GeneratedTestArtifact(
                id=f"POM{index:03d}",
                filename=str(file['path']),
                framework=framework,
                kind=kind,
                code=str(file['content']),
                dependencies={str(d) for d in dependencies},
            ))
        return artifacts

    def _build_pom_prompt(
        self,
        findings: AnalysisFindings,
        context: ChangeContext,
        pattern: TestPattern,
    ) -> str:
        structure = pattern.structure if pattern.detected else default_pom_structure()
        scenarios = select_scenarios(findings.scenarios, limit=POM_SCENARIO_LIMIT, include_e2e=True)
        framework = pattern.framework if pattern.framework != 'unknown' else self.settings.test_frameworks.e2e

        sections = [
            "## Test Generation Request",
            "",
            "### PR Context",
            f"- **Title:** {context.title}",
            f"- **Repository:** {context.repository}",
            f"- **Description:** {context.body or 'No description'}",
            "",
            "### Test Structure",
            f"- **Pattern:** {'Existing pattern detected' if pattern.detected else 'No existing tests - use POM'}",
            f"- **Framework:** {framework}",
            f"- **Tests Directory:** {structure.tests_dir}",
            f"- **Pages Directory:** {structure.pages_dir or 'e2e/pages'}",
            f"- **Utils Directory:** {structure.utils_dir or 'e2e/utils'}",
            "",
            "### Test Scenarios to Implement",
            "",
            "\n\n".join(format_scenario_for_prompt(s) for s in scenarios),
        ]

        if pattern.examples:
            sections += ["", "### Existing Code Examples (follow this style)", ""]
            for example in pattern.examples:
                sections.append(f"#### {example.type}: {example.path}\n```\n{example.content}\n```\n")

        sections += [
            "",
            "### Code Diff (for context)",
            f"```diff\n{context.diff[:MAX_DIFF_CHARS]}\n```",
            "",
            "Generate POM test files following the structure above. "
            "Include Page Objects for any pages involved in the scenarios.",
        ]
        return "\n".join(sections)

    # ------------------------------------------------------------------
    # Flat generation
    # ------------------------------------------------------------------

    async def _generate_flat_tests(
        self,
        findings: AnalysisFindings,
        context: ChangeContext,
        pattern: TestPattern,
    ) -> List[GeneratedTestArtifact]:
        user_prompt = self._build_flat_prompt(findings, context, pattern)
        content = await self.llm.infer(FLAT_SYSTEM_PROMPT, user_prompt, structured_output=True)

        parsed = parse_structured_output(content)
        if parsed is None or not isinstance(parsed.get('tests', []), list):
            logger.error("Failed to parse flat test generation response", response_chars=len(content or ''))
            return []

        artifacts = []
        for index, test in enumerate(parsed.get('tests', []), start=1):
            artifact = self._artifact_from_flat_entry(test, index, pattern)
            if artifact is not None:
                artifacts.append(artifact)
        return artifacts

    def _artifact_from_flat_entry(
        self,
        entry: Any,
        index: int,
        pattern: TestPattern,
    ) -> Optional[GeneratedTestArtifact]:
        if not isinstance(entry, dict) or not entry.get('filename') or not entry.get('code'):
            logger.warning("Skipping malformed generated test", index=index)
            return None

        kind = entry.get('type') if entry.get('type') in VALID_KINDS else 'test'
        dependencies = entry.get('dependencies') if isinstance(entry.get('dependencies'), list) else []
        framework = entry.get('framework') or (
            pattern.framework if pattern.framework != 'unknown' else self.settings.test_frameworks.e2e
        )
        return GeneratedTestArtifact(
            id=str(entry.get('id') or f"TC{index:03d}"),
            filename=str(entry['filename']),
            framework=str(framework),
            kind=kind,
            code=str(entry['code']),
            dependencies={str(d) for d in dependencies},
        )

    def _build_flat_prompt(
        self,
        findings: AnalysisFindings,
        context: ChangeContext,
        pattern: TestPattern,
    ) -> str:
        scenarios = select_scenarios(findings.scenarios, limit=FLAT_SCENARIO_LIMIT, include_e2e=False)
        frameworks = self.settings.test_frameworks

        return "\n".join([
            "## Test Generation Request",
            "",
            "### PR Context",
            f"- **Title:** {context.title}",
            f"- **Repository:** {context.repository}",
            "",
            format_pattern_summary(pattern),
            "",
            "### Configured Frameworks",
            f"- **E2E:** {frameworks.e2e}",
            f"- **Unit:** {frameworks.unit}",
            f"- **API:** {frameworks.api}",
            "",
            "### Test Directory",
            pattern.structure.tests_dir,
            "",
            "### Test Scenarios to Implement",
            "",
            "\n\n".join(format_scenario_for_prompt(s) for s in scenarios),
            "",
            "### Code Diff (for context)",
            f"```diff\n{context.diff[:MAX_DIFF_CHARS]}\n```",
            "",
            "Generate test files for the scenarios above.",
        ])


async def write_test_files(result: TestGenerationResult, base_dir: Optional[Path] = None) -> List[Path]:
    """Write the valid artifacts of a generation result to disk."""
    base_dir = Path(base_dir or os.getcwd())
    written: List[Path] = []

    for artifact in result.artifacts:
        path = base_dir / artifact.filename
        path.parent.mkdir(parents=True, exist_ok=True)
        await anyio.to_thread.run_sync(path.write_text, artifact.code, 'utf-8')
        written.append(path)
        logger.info("Test file written", file=str(path), kind=artifact.kind)

    return written
