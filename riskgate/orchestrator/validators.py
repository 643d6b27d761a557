"""Syntax validation for generated test artifacts."""

import ast
import re
from typing import Iterable, List, Optional, Protocol

from ..config import Settings, get_settings
from ..logging import get_logger
from ..models.artifacts import (
    GeneratedTestArtifact,
    ValidationError,
    ValidationReport,
    ValidationSummary,
    ValidationWarning,
)

logger = get_logger(__name__)

SCRIPT_EXTENSIONS = ('.ts', '.tsx', '.js', '.jsx', '.mjs', '.cjs')
CLOSERS = {'(': ')', '[': ']', '{': '}', '${': '}'}

PLACEHOLDER_PATTERNS = [
    re.compile(r'//\s*\.\.\.'),
    re.compile(r'#\s*\.\.\.\s*$', re.MULTILINE),
    re.compile(r'(//|#)\s*(TODO|FIXME)', re.IGNORECASE),
    re.compile(r'PLACEHOLDER', re.IGNORECASE),
    re.compile(r'\.\.\.implementation', re.IGNORECASE),
    re.compile(r'/\*\s*\.\.\.\s*\*/'),
]


class SyntaxValidator(Protocol):
    def validate(self, filename: str, code: str) -> ValidationReport:
        ...


class NoopSyntaxValidator:
    """Accepts every artifact."""

    def validate(self, filename: str, code: str) -> ValidationReport:
        return ValidationReport(valid=True)


class DefaultSyntaxValidator:
    """Parses Python with ``ast`` and checks JS/TS delimiter structure.

    Syntax problems make an artifact invalid; structural and style issues
    only add warnings.
    """

    def validate(self, filename: str, code: str) -> ValidationReport:
        if not code or not code.strip():
            return ValidationReport(valid=False, errors=[ValidationError(message="Empty test file")])

        language = self._get_language(filename)
        if language == 'python':
            errors = self._check_python_syntax(filename, code)
        elif language == 'script':
            errors = self._check_script_delimiters(code)
        else:
            errors = []

        warnings: List[ValidationWarning] = []
        if self._looks_like_test(filename):
            warnings.extend(self._validate_test_structure(code, language))
        warnings.extend(self._detect_common_issues(code))

        return ValidationReport(valid=not errors, errors=errors, warnings=warnings)

    def _get_language(self, filename: str) -> str:
        lowered = filename.lower()
        if lowered.endswith('.py'):
            return 'python'
        if lowered.endswith(SCRIPT_EXTENSIONS):
            return 'script'
        return 'other'

    def _looks_like_test(self, filename: str) -> bool:
        name = filename.rsplit('/', 1)[-1].lower()
        return 'test' in name or 'spec' in name or 'cy.' in name

    def _check_python_syntax(self, filename: str, code: str) -> List[ValidationError]:
        try:
            ast.parse(code, filename=filename)
        except SyntaxError as e:
            return [ValidationError(message=e.msg or "Invalid syntax", line=e.lineno, column=e.offset)]
        return []

    def _check_script_delimiters(self, code: str) -> List[ValidationError]:
        """Check bracket, string and comment balance for JS/TS sources.

        Stops at the first problem, the way a parser would.
        """
        stack: List[tuple] = []
        modes = ['code']
        i = 0
        n = len(code)

        def error_at(index: int, message: str) -> List[ValidationError]:
            line = code.count('\n', 0, index) + 1
            column = index - (code.rfind('\n', 0, index) + 1) + 1
            return [ValidationError(message=message, line=line, column=column)]

        while i < n:
            ch = code[i]
            nxt = code[i + 1] if i + 1 < n else ''

            if modes[-1] == 'template':
                if ch == '\\':
                    i += 2
                    continue
                if ch == '`':
                    modes.pop()
                elif ch == '$' and nxt == '{':
                    modes.append('code')
                    stack.append(('${', i))
                    i += 2
                    continue
                i += 1
                continue

            if ch == '/' and nxt == '/':
                newline = code.find('\n', i)
                i = n if newline == -1 else newline
                continue
            if ch == '/' and nxt == '*':
                end = code.find('*/', i + 2)
                if end == -1:
                    return error_at(i, "Unterminated block comment")
                i = end + 2
                continue
            if ch in ('"', "'"):
                j = i + 1
                while j < n and code[j] != ch:
                    if code[j] == '\\':
                        j += 1
                    elif code[j] == '\n':
                        break
                    j += 1
                if j >= n or code[j] != ch:
                    return error_at(i, "Unterminated string literal")
                i = j + 1
                continue
            if ch == '`':
                modes.append('template')
            elif ch in '([{':
                stack.append((ch, i))
            elif ch in ')]}':
                if not stack:
                    return error_at(i, f"Unexpected '{ch}'")
                opener, position = stack.pop()
                if CLOSERS[opener] != ch:
                    return error_at(i, f"'{CLOSERS[opener]}' expected to close '{opener}' but found '{ch}'")
                if opener == '${':
                    modes.pop()
            i += 1

        if modes[-1] == 'template':
            return error_at(n, "Unterminated template literal")
        if stack:
            opener, position = stack[-1]
            return error_at(position, f"'{opener}' is never closed")
        return []

    def _validate_test_structure(self, code: str, language: str) -> List[ValidationWarning]:
        warnings: List[ValidationWarning] = []

        if language == 'python':
            if not re.search(r'^\s*(async\s+)?def\s+test_', code, re.MULTILINE):
                warnings.append(ValidationWarning(
                    message="No test_ functions found",
                    suggestion="pytest collects functions named test_*",
                ))
            return warnings

        has_playwright = bool(re.search(r'''import\s+.*from\s+['"]@playwright/test['"]''', code))
        has_vitest = bool(re.search(r'''import\s+.*from\s+['"]vitest['"]''', code))
        has_jest = bool(re.search(r'''import\s+.*from\s+['"]@jest''', code)) or bool(re.search(r'describe|it|test', code))

        if not (has_playwright or has_vitest or has_jest):
            warnings.append(ValidationWarning(
                message="No test framework import detected",
                suggestion='Add import { test, expect } from "@playwright/test" or similar',
            ))

        if not re.search(r'\b(test|it)\s*\(', code):
            warnings.append(ValidationWarning(
                message="No test() or it() blocks found",
                suggestion="Ensure the test file contains at least one test block",
            ))

        if has_playwright:
            if not re.search(r'\bexpect\s*\(', code) and not re.search(r'\.toHave|\.toBe|\.toEqual|\.toContain', code):
                warnings.append(ValidationWarning(
                    message="No assertions (expect) found in Playwright test",
                    suggestion="Add expect() assertions to verify test outcomes",
                ))
            if 'async' not in code:
                warnings.append(ValidationWarning(
                    message="Playwright test may be missing async",
                    suggestion="Playwright tests typically require async ({ page }) => { ... }",
                ))

        return warnings

    def _detect_common_issues(self, code: str) -> List[ValidationWarning]:
        warnings: List[ValidationWarning] = []

        if any(pattern.search(code) for pattern in PLACEHOLDER_PATTERNS):
            warnings.append(ValidationWarning(
                message="Possible placeholder or incomplete code detected",
                suggestion="Ensure all code is complete and executable",
            ))

        if re.search(r'localhost:\d+', code) and 'baseURL' not in code and 'base_url' not in code:
            warnings.append(ValidationWarning(
                message="Hardcoded localhost URL detected",
                suggestion="Consider using baseURL from the test runner config",
            ))

        if re.search(r'test\([^)]+,\s*async\s*\([^)]*\)\s*=>\s*\{\s*\}', code):
            warnings.append(ValidationWarning(
                message="Empty test block detected",
                suggestion="Test should contain actual test logic",
            ))

        if re.search(r'page\s*\)', code) and not re.search(
            r'page\.(goto|click|fill|locator|getByRole|getByText|getByTestId|get_by_role|get_by_text)', code
        ):
            warnings.append(ValidationWarning(
                message="Test receives page but no page actions found",
                suggestion="Add page interactions like page.goto(), page.click(), etc.",
            ))

        return warnings


def resolve_validator(settings: Optional[Settings] = None) -> SyntaxValidator:
    """Pick the validator once, at construction time."""
    settings = settings or get_settings()
    if settings.syntax_validation == 'off':
        return NoopSyntaxValidator()
    return DefaultSyntaxValidator()


def validate_batch(
    artifacts: Iterable[GeneratedTestArtifact],
    validator: SyntaxValidator,
) -> ValidationSummary:
    """Validate artifacts in place and count the outcomes."""
    summary = ValidationSummary()

    for artifact in artifacts:
        try:
            report = validator.validate(artifact.filename, artifact.code)
        except Exception as e:
            report = ValidationReport(
                valid=False,
                errors=[ValidationError(message=f"Failed to parse: {e}")],
            )
        artifact.attach_validation(report)

        summary.total_tests += 1
        if report.valid:
            summary.valid_tests += 1
        else:
            summary.invalid_tests += 1
            logger.warning(
                "Test validation failed",
                filename=artifact.filename,
                errors=[e.message for e in report.errors],
            )

        if report.warnings:
            logger.debug(
                "Test validation warnings",
                filename=artifact.filename,
                warnings=[w.message for w in report.warnings],
            )

    logger.info(
        "Batch validation completed",
        total=summary.total_tests,
        valid=summary.valid_tests,
        invalid=summary.invalid_tests,
    )
    return summary
