"""CLI application for DepSentry."""

import asyncio
import dataclasses
import json
import logging
from contextlib import nullcontext
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.prompt import Prompt
from rich.table import Table

from depsentry.config import VERSION, Settings
from depsentry.errors import ManifestError
from depsentry.models import NO_FIX_AVAILABLE, OutdatedPackage, Vulnerability
from depsentry.report import ProjectReport, check_project
from depsentry.updater import apply_updates

console = Console()

SEVERITY_STYLES = {
    "critical": "bold red",
    "high": "red",
    "moderate": "yellow",
    "low": "blue",
    "info": "bright_black",
}


def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Send log records to stderr through Rich."""
    if quiet:
        level = logging.WARNING
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
    # Request lines from httpx are only interesting when debugging
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


def display_outdated(outdated: list[OutdatedPackage]) -> None:
    if not outdated:
        console.print("✓ All dependencies are up to date!", style="green")
        return

    table = Table(title="Outdated Dependencies", title_justify="left")
    table.add_column("Package", style="blue")
    table.add_column("Current")
    table.add_column("Wanted", style="yellow")
    table.add_column("Latest", style="green")
    table.add_column("Type")
    for package in outdated:
        table.add_row(package.name, package.current, package.wanted, package.latest, package.dependency_type.value)
    console.print(table)


def display_vulnerabilities(vulnerabilities: list[Vulnerability], complete: bool = True) -> None:
    if not vulnerabilities:
        if complete:
            console.print("✓ No known vulnerabilities found!", style="green")
        else:
            console.print("No known vulnerabilities found, but the check may be incomplete.", style="yellow")
        return

    console.print("\nSecurity Vulnerabilities:", style="bold red")
    for index, vuln in enumerate(vulnerabilities, start=1):
        severity_style = SEVERITY_STYLES.get(vuln.severity, "white")
        console.print(f"\n{index}. [bold red]{vuln.name}@{vuln.version}[/]", highlight=False)
        console.print(f"   [yellow]Title:[/] {vuln.title}", highlight=False)
        console.print(f"   [yellow]Severity:[/] [{severity_style}]{vuln.severity}[/]")
        console.print(f"   [yellow]Vulnerable:[/] {vuln.vulnerable_versions}", highlight=False)
        console.print(f"   [yellow]Fixed in:[/] {vuln.patched_versions or NO_FIX_AVAILABLE}", highlight=False)
        console.print(f"   [yellow]Advisory:[/] {vuln.advisory or 'No advisory available'}", highlight=False)
        if vuln.url:
            console.print(f"   [yellow]More info:[/] {vuln.url}")

    if not complete:
        console.print("\nRegistry advisories were used; the check may be incomplete.", style="yellow")
    console.print("\nRun `npm audit` for more details.", style="yellow")


def select_updates(outdated: list[OutdatedPackage]) -> list[OutdatedPackage]:
    """Ask which packages to update."""
    names = ", ".join(package.name for package in outdated)
    answer = Prompt.ask(f"Packages to update ({names}), comma-separated or 'all'", default="all")
    if answer.strip().lower() == "all":
        return list(outdated)

    wanted = {name.strip() for name in answer.split(",") if name.strip()}
    unknown = wanted - {package.name for package in outdated}
    if unknown:
        console.print(f"Ignoring unknown packages: {', '.join(sorted(unknown))}", style="yellow")
    return [package for package in outdated if package.name in wanted]


def run_updates(project_dir: Path, selection: list[OutdatedPackage], include_dev: bool, include_peer: bool) -> None:
    if not selection:
        console.print("No packages selected for update.", style="yellow")
        return

    outcome = apply_updates(project_dir, selection, include_dev=include_dev, include_peer=include_peer)
    if not outcome.manifest_changed:
        console.print("No updates were made.", style="yellow")
        return

    console.print("✓ Updated package.json", style="green")
    if outcome.installed:
        console.print("✓ Successfully updated dependencies!", style="green")
    else:
        console.print(f"Error installing updated dependencies: {outcome.install_error}", style="red")
        console.print(f"You may need to manually run `{outcome.package_manager} install` to complete the update.")


def format_json_output(report: ProjectReport) -> str:
    return json.dumps(report.to_dict(), indent=2)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"depsentry {VERSION}")
        raise typer.Exit()


app = typer.Typer(
    name="depsentry",
    help="DepSentry - Check npm dependencies for updates and known vulnerabilities",
    add_completion=False,
)


@app.command()
def check(
    project_dir: Path = typer.Option(Path("."), "--dir", "-d", help="Project directory containing package.json"),
    ci: bool = typer.Option(False, "--ci", "-c", help="Run in CI mode (non-interactive)"),
    update: bool = typer.Option(False, "--update", "-u", help="Automatically update all dependencies"),
    security: bool = typer.Option(False, "--security", "-s", help="Check for security vulnerabilities only"),
    outdated: bool = typer.Option(False, "--outdated", "-o", help="Check for outdated packages only"),
    include_dev: bool = typer.Option(False, "--include-dev", help="Let automatic updates touch devDependencies"),
    include_peer: bool = typer.Option(False, "--include-peer", help="Let automatic updates touch peerDependencies"),
    json_output: bool = typer.Option(False, "--json", help="Print a JSON report"),
    registry: str | None = typer.Option(None, "--registry", help="npm registry URL"),
    timeout: float | None = typer.Option(None, "--timeout", help="Per-request timeout in seconds"),
    no_audit: bool = typer.Option(False, "--no-audit", help="Skip npm audit and query registry advisories"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug output"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only show warnings and errors"),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show the version and exit"
    ),
) -> None:
    """DepSentry - Report outdated and vulnerable npm dependencies."""
    setup_logging(verbose, quiet)

    # --security and --outdated narrow the run; both together mean everything
    check_outdated = outdated or not security
    check_vulnerabilities = security or not outdated

    try:
        settings = Settings.from_env()
        overrides = {}
        if registry:
            overrides["registry_url"] = registry.rstrip("/")
        if timeout:
            overrides["timeout"] = timeout
        settings = dataclasses.replace(settings, **overrides)

        status = nullcontext() if json_output else console.status("Analyzing project...")
        with status:
            report = asyncio.run(
                check_project(
                    project_dir,
                    settings,
                    check_outdated=check_outdated,
                    check_vulnerabilities=check_vulnerabilities,
                    use_audit=not no_audit,
                )
            )
    except (ManifestError, ValueError) as e:
        console.print(f"Error: {e}", style="red")
        raise typer.Exit(1)

    if json_output:
        typer.echo(format_json_output(report))
        return

    if check_outdated:
        display_outdated(report.outdated)
    if check_vulnerabilities:
        display_vulnerabilities(report.vulnerabilities, report.vulnerabilities_complete)
    if report.warnings:
        console.print(f"\n{len(report.warnings)} warning(s) were reported; results may be partial.", style="yellow")

    if not report.outdated:
        return

    try:
        if update or ci:
            run_updates(project_dir, report.outdated, include_dev, include_peer)
        elif typer.confirm("Would you like to update outdated dependencies?", default=False):
            run_updates(project_dir, select_updates(report.outdated), include_dev=True, include_peer=True)
    except ManifestError as e:
        console.print(f"Error: Failed to update dependencies: {e}", style="red")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
