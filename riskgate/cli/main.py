"""Main CLI application for riskgate."""

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from ..adapters.github_client import GitHubClient
from ..adapters.local_repository import LocalRepository
from ..config import get_settings
from ..logging import get_logger, setup_logging
from ..models.execution import ChangeContext
from ..models.findings import AnalysisFindings
from ..orchestrator.governance import compute_governance_decision
from ..orchestrator.pattern_detector import TestPatternDetector
from ..orchestrator.pipeline import GovernancePipeline
from ..orchestrator.summaries import format_execution_summary

app = typer.Typer(
    name="riskgate",
    help="Merge governance and autonomous test generation for pull requests",
    add_completion=False
)

console = Console()
logger = get_logger(__name__)

RECOMMENDATION_STYLES = {
    'merge_ok': 'green',
    'attention': 'yellow',
    'block': 'red',
}


def _load_findings(path: Path) -> AnalysisFindings:
    try:
        data = json.loads(path.read_text(encoding='utf-8'))
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[red]Could not read findings from {path}: {e}[/red]")
        raise typer.Exit(1)
    return AnalysisFindings.from_dict(data)


def _print_decision(findings: AnalysisFindings) -> None:
    decision = compute_governance_decision(findings)
    style = RECOMMENDATION_STYLES[decision.recommendation]

    table = Table(title="Merge Governance")
    table.add_column("Metric", style="cyan")
    table.add_column("Value")
    table.add_row("Overall risk", findings.overall_risk)
    table.add_row("Risks", str(len(findings.risks)))
    table.add_row("Gaps", str(len(findings.gaps)))
    table.add_row("Critical scenarios", str(len(findings.critical_scenarios)))
    table.add_row("Risk score", f"{decision.risk_score}/100")
    table.add_row("Recommendation", f"[{style}]{decision.label}[/{style}]")
    console.print(table)


@app.command()
def score(
    findings_file: Path = typer.Argument(..., help="Analysis findings JSON file"),
) -> None:
    """Score an analysis and print the merge recommendation."""
    findings = _load_findings(findings_file)
    _print_decision(findings)


@app.command()
def detect(
    path: Optional[Path] = typer.Option(
        None, "--path", "-p", help="Local repository checkout"
    ),
    owner: Optional[str] = typer.Option(None, "--owner", help="GitHub repository owner"),
    repo: Optional[str] = typer.Option(None, "--repo", help="GitHub repository name"),
) -> None:
    """Detect the test framework and layout of a repository."""
    if path is None and not (owner and repo):
        console.print("[red]Provide --path or both --owner and --repo[/red]")
        raise typer.Exit(2)

    console.print(f"[bold blue]riskgate[/bold blue] - Test Pattern Detection")
    console.print(f"Repository: {path or f'{owner}/{repo}'}")
    console.print()

    asyncio.run(_run_detection(path, owner, repo))


@app.command()
def run(
    findings_file: Path = typer.Argument(..., help="Analysis findings JSON file"),
    owner: str = typer.Option(..., "--owner", help="GitHub repository owner"),
    repo: str = typer.Option(..., "--repo", help="GitHub repository name"),
    pull_number: int = typer.Option(..., "--pr", help="Pull request number"),
    title: str = typer.Option("", "--title", help="Pull request title"),
    diff_file: Optional[Path] = typer.Option(
        None, "--diff-file", help="Unified diff of the pull request"
    ),
    autonomous: Optional[bool] = typer.Option(
        None, "--autonomous/--no-autonomous", help="Override autonomous.enabled"
    ),
    wait_ci: bool = typer.Option(
        False, "--wait-ci", help="Keep running until CI monitoring finishes"
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable verbose logging"
    ),
) -> None:
    """Process a change event: decide, then generate and propose tests."""
    settings = get_settings()

    if autonomous is not None:
        settings.autonomous.enabled = autonomous
    if verbose:
        settings.log_level = "DEBUG"
        setup_logging()

    findings = _load_findings(findings_file)
    diff = diff_file.read_text(encoding='utf-8') if diff_file else ''
    context = ChangeContext(owner=owner, repo=repo, pull_number=pull_number, title=title, diff=diff)

    console.print(f"[bold blue]riskgate[/bold blue] - Change Event")
    console.print(f"Pull request: {context.pull_url}")
    console.print(f"Autonomous: {settings.autonomous.enabled}")
    console.print()

    asyncio.run(_run_change_event(findings, context, wait_ci))


@app.command()
def health() -> None:
    """Check configuration and reachability of external services."""
    console.print(f"[bold blue]riskgate[/bold blue] - Health Check")
    console.print()

    asyncio.run(_check_health())


async def _run_detection(path: Optional[Path], owner: Optional[str], repo: Optional[str]) -> None:
    try:
        snapshot = LocalRepository(path) if path is not None else GitHubClient(owner, repo)
        pattern = await TestPatternDetector().detect(snapshot)
    except Exception as e:
        console.print(f"[red]Detection failed: {e}[/red]")
        logger.error("Detection failed", error=str(e))
        raise typer.Exit(1)

    table = Table(title="Detected Test Pattern")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Detected", "yes" if pattern.detected else "no")
    table.add_row("Framework", pattern.framework)
    table.add_row("Config file", pattern.config_file or "-")
    table.add_row("Structure", pattern.structure.type)
    for name, directory in pattern.directories.items():
        table.add_row(f"{name.capitalize()} dir", directory or "-")
    table.add_row("Examples", ", ".join(e.path for e in pattern.examples) or "-")
    console.print(table)


async def _run_change_event(findings: AnalysisFindings, context: ChangeContext, wait_ci: bool) -> None:
    try:
        pipeline = GovernancePipeline.for_repository(context.owner, context.repo)
        outcome = await pipeline.process_change_event(findings, context)

        _print_decision(findings)
        console.print()
        console.print(format_execution_summary(outcome.execution))

        monitor = pipeline.monitor
        if monitor is not None and outcome.execution.monitoring_scheduled:
            if wait_ci:
                console.print("[yellow]Waiting for CI monitoring to finish...[/yellow]")
                await monitor.wait_closed()
                console.print("[green]CI monitoring finished[/green]")
            else:
                await monitor.aclose()

    except Exception as e:
        console.print(f"[red]Change event failed: {e}[/red]")
        logger.error("Change event failed", error=str(e))
        raise typer.Exit(1)

    if outcome.execution.errors:
        raise typer.Exit(1)


async def _check_health() -> None:
    """Check health of all configured services."""
    settings = get_settings()
    healthy = True

    if settings.github_token:
        try:
            client = GitHubClient("riskgate", "health")
            await client.health_check()
            console.print("✅ GitHub: [green]OK[/green]")
        except Exception as e:
            healthy = False
            console.print(f"❌ GitHub: [red]FAILED[/red] ({e})")
    else:
        console.print("⚠️  GitHub: [yellow]token not configured[/yellow]")

    if settings.claude_api_key:
        console.print("✅ Claude: [green]API key configured[/green]")
    else:
        console.print("⚠️  Claude: [yellow]API key not configured[/yellow]")

    if settings.slack_webhook_url:
        console.print("✅ Slack: [green]webhook configured[/green]")
    else:
        console.print("ℹ️  Slack: notifications disabled")

    console.print(f"Autonomous execution: {'enabled' if settings.autonomous.enabled else 'disabled'}")

    if not healthy:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
