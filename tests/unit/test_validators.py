"""Unit tests for generated test validation."""

import pytest

from riskgate.models.artifacts import GeneratedTestArtifact
from riskgate.orchestrator.validators import (
    DefaultSyntaxValidator,
    NoopSyntaxValidator,
    resolve_validator,
    validate_batch,
)


def artifact(filename, code, id='TC001'):
    return GeneratedTestArtifact(id=id, filename=filename, framework='playwright', kind='e2e', code=code)


class TestDefaultSyntaxValidator:
    """Test cases for DefaultSyntaxValidator."""

    def setup_method(self):
        self.validator = DefaultSyntaxValidator()

    def test_valid_playwright_spec(self, valid_spec):
        report = self.validator.validate('e2e/tests/login.spec.ts', valid_spec)

        assert report.valid is True
        assert report.errors == []

    def test_valid_page_object(self, valid_page):
        report = self.validator.validate('e2e/pages/login.page.ts', valid_page)

        assert report.valid is True
        assert report.warnings == []

    def test_unclosed_call_is_invalid(self, broken_spec):
        report = self.validator.validate('e2e/tests/cart.spec.ts', broken_spec)

        assert report.valid is False
        assert "never closed" in report.errors[0].message
        assert report.errors[0].line == 5

    def test_mismatched_bracket(self):
        report = self.validator.validate('a.test.ts', "test('x', () => { foo(] })")

        assert report.valid is False
        assert report.errors[0].line == 1
        assert report.errors[0].column == 23

    def test_unterminated_string(self):
        report = self.validator.validate('a.test.js', "const name = 'oops;\ntest('x', () => {});")

        assert report.valid is False
        assert report.errors[0].message == "Unterminated string literal"

    def test_delimiters_in_strings_and_comments_are_ignored(self):
        code = (
            "// unmatched ( in a comment\n"
            "/* and { here */\n"
            "const s = \"a } b\";\n"
            "const t = `value ${ {a: 1}.a } and }`;\n"
            "test('it', async () => { expect(s).toBe('a } b'); });\n"
        )
        report = self.validator.validate('x.test.ts', code)

        assert report.valid is True

    def test_unterminated_template_literal(self):
        report = self.validator.validate('x.test.ts', "const t = `open ${1}")

        assert report.valid is False
        assert report.errors[0].message == "Unterminated template literal"

    def test_python_syntax_error(self):
        report = self.validator.validate('tests/test_cart.py', "def test_cart(:\n    assert True\n")

        assert report.valid is False
        assert report.errors[0].line == 1

    def test_valid_python_test(self):
        code = "def test_total():\n    assert 1 + 1 == 2\n"
        report = self.validator.validate('tests/test_cart.py', code)

        assert report.valid is True
        assert report.warnings == []

    def test_python_without_test_functions_warns(self):
        report = self.validator.validate('tests/test_cart.py', "x = 1\n")

        assert report.valid is True
        assert report.warnings[0].message == "No test_ functions found"

    def test_empty_file_is_invalid(self):
        report = self.validator.validate('a.spec.ts', "   \n")

        assert report.valid is False
        assert report.errors[0].message == "Empty test file"

    def test_placeholder_only_warns(self, valid_spec):
        report = self.validator.validate('a.spec.ts', valid_spec + "\n// TODO: cover refunds\n")

        assert report.valid is True
        assert any("placeholder" in w.message for w in report.warnings)

    def test_unknown_extension_is_not_parsed(self):
        report = self.validator.validate('fixtures/data.json', '{"unbalanced": [')

        assert report.valid is True


class TestValidatorSelection:
    def test_noop_accepts_anything(self):
        assert NoopSyntaxValidator().validate('a.spec.ts', '(((').valid is True

    def test_resolve_validator(self, settings):
        assert isinstance(resolve_validator(settings), DefaultSyntaxValidator)

        settings.syntax_validation = 'off'
        assert isinstance(resolve_validator(settings), NoopSyntaxValidator)


class TestValidateBatch:
    """Test cases for batch validation."""

    def test_counts_and_attaches_reports(self, valid_spec, broken_spec):
        artifacts = [
            artifact('a.spec.ts', valid_spec, id='TC001'),
            artifact('b.spec.ts', broken_spec, id='TC002'),
            artifact('c.spec.ts', valid_spec, id='TC003'),
        ]

        summary = validate_batch(artifacts, DefaultSyntaxValidator())

        assert (summary.total_tests, summary.valid_tests, summary.invalid_tests) == (3, 2, 1)
        assert all(a.validation is not None for a in artifacts)
        assert [a.is_valid for a in artifacts] == [True, False, True]

    def test_validator_exception_marks_artifact_invalid(self, valid_spec):
        class ExplodingValidator:
            def validate(self, filename, code):
                raise RuntimeError("parser crashed")

        item = artifact('a.spec.ts', valid_spec)
        summary = validate_batch([item], ExplodingValidator())

        assert summary.invalid_tests == 1
        assert item.is_valid is False
        assert "parser crashed" in item.validation.errors[0].message

    def test_empty_batch(self):
        summary = validate_batch([], DefaultSyntaxValidator())
        assert summary.total_tests == 0
