"""Markdown summaries for PR comments and companion PR bodies."""

from typing import List

from ..models.artifacts import GeneratedTestArtifact, TestGenerationResult, TestPattern
from ..models.execution import ChangeContext, ExecutionResult
from ..models.governance import GovernanceDecision


def format_pattern_summary(pattern: TestPattern) -> str:
    if not pattern.detected:
        return (
            "### Test Pattern\n"
            "No existing test pattern detected. Using the Page Object Model structure."
        )

    lines = [
        "### Detected Test Pattern",
        f"- **Framework:** {pattern.framework}",
        f"- **Structure:** {pattern.structure.type.upper()}",
        f"- **Tests Directory:** `{pattern.structure.tests_dir}`",
    ]
    if pattern.structure.pages_dir:
        lines.append(f"- **Pages Directory:** `{pattern.structure.pages_dir}`")
    if pattern.structure.utils_dir:
        lines.append(f"- **Utils Directory:** `{pattern.structure.utils_dir}`")
    if pattern.config_file:
        lines.append(f"- **Config:** `{pattern.config_file}`")
    if pattern.examples:
        lines.append(f"- **Examples Found:** {len(pattern.examples)} files")
    return "\n".join(lines)


def _artifact_table(artifacts: List[GeneratedTestArtifact]) -> List[str]:
    lines = [
        "| File | Framework | Type |",
        "|------|-----------|------|",
    ]
    for artifact in artifacts:
        lines.append(f"| `{artifact.filename}` | {artifact.framework} | {artifact.kind} |")
    return lines


def format_test_generation_summary(result: TestGenerationResult) -> str:
    """Summarize a generation run, including what validation filtered out."""
    if not result.artifacts:
        return "### Test Generation\nNo tests were generated."

    summary = result.validation_summary
    lines = [f"### Generated Tests ({len(result.artifacts)})", ""]
    lines.extend(_artifact_table(result.artifacts))
    lines.append("")
    lines.append(
        f"**Validation:** {summary.valid_tests}/{summary.total_tests} passed"
        + (f", {summary.invalid_tests} excluded" if summary.invalid_tests else "")
    )

    warned = [a for a in result.artifacts if a.has_warnings]
    if warned:
        lines.append("")
        lines.append("**Warnings:**")
        for artifact in warned:
            for warning in artifact.validation.warnings:
                lines.append(f"- `{artifact.filename}`: {warning.message}")

    return "\n".join(lines)


def format_execution_summary(result: ExecutionResult) -> str:
    lines = ["### Autonomous Execution", ""]

    if result.artifacts:
        lines.append(f"**Generated {len(result.artifacts)} test file(s)**")
        lines.append("")
        lines.extend(_artifact_table(result.artifacts))
        lines.append("")

    if result.companion_pr:
        lines.append(f"**Created Test PR:** [#{result.companion_pr.number}]({result.companion_pr.url})")
        lines.append(f"   - Branch: `{result.companion_pr.branch}`")
        if result.monitoring_scheduled:
            lines.append("   - CI monitoring: scheduled")
        lines.append("")

    if result.errors:
        lines.append("**Errors:**")
        for error in result.errors:
            lines.append(f"- {error}")
        lines.append("")

    if len(lines) == 2:
        lines.append("Nothing to do.")

    return "\n".join(lines)


def format_companion_pr_body(context: ChangeContext, artifacts: List[GeneratedTestArtifact]) -> str:
    lines = [
        "## Automated Tests",
        "",
        f"This PR adds generated tests for [#{context.pull_number}]({context.pull_url})"
        + (f": {context.title}" if context.title else "."),
        "",
    ]
    lines.extend(_artifact_table(artifacts))
    lines += [
        "",
        "CI on this PR is monitored. A failing run gets one automated fix attempt "
        "before it is handed to reviewers.",
    ]
    return "\n".join(lines)


def format_decision_summary(decision: GovernanceDecision) -> str:
    return (
        "### Merge Governance\n"
        f"- **Risk Score:** {decision.risk_score}/100\n"
        f"- **Recommendation:** {decision.label}"
    )
