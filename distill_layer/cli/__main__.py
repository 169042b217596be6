"""
CLI for the distillation layer.

Commands:
    distill    - Distill documents into evidence packs for a target
    profiles   - List built-in target profiles
    normalize  - Show the canonical target for a raw agency string
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Optional

import typer
from rich import print as rprint
from rich.console import Console
from rich.table import Table as RichTable

app = typer.Typer(
    name="distill-layer",
    help="Evidence Distillation Layer - documents to bounded evidence packs",
)
console = Console()


@app.command()
def distill(
    paths: list[Path] = typer.Argument(..., help="Files or directories (.txt, .md, .pdf)"),
    target: Optional[str] = typer.Option(None, "--target", "-t", help="Agency name or identifier (default: DISTILL_DEFAULT_TARGET)"),
    budget: bool = typer.Option(True, "--budget/--no-budget", help="Compose budgeted prompt blocks"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Directory for run artifacts (default: DISTILL_OUTPUT_DIR)"),
    procurement: Optional[Path] = typer.Option(None, "--procurement", "-p", help="Procurement metrics JSON"),
    strict: bool = typer.Option(False, "--strict", help="Exit non-zero on poor coverage"),
    as_json: bool = typer.Option(False, "--json", help="Print the manifest as JSON"),
    run_clock: Optional[datetime] = typer.Option(None, "--run-clock", help="Clock stamped on cards (default: DISTILL_RUN_CLOCK or start of today, UTC)"),
):
    """
    Distill documents into high-signal and context evidence packs.

    Examples:
        # Distill a folder of audit reports for Commerce
        distill-layer distill ./reports --target "Dept. of Commerce"

        # Save artifacts and fail on poor coverage
        distill-layer distill gao.txt oig.pdf --target IRS --output ./distilled --strict
    """
    from ..config.settings import get_settings
    from ..src.budget import estimate_tokens
    from ..src.distill import distill_documents
    from ..src.loaders import load_documents
    from ..src.logging_config import configure_logging
    from ..src.manifest import save_run_artifacts
    from ..src.schemas.report import ProcurementMetrics, Severity

    settings = get_settings()
    configure_logging(settings.log_level)

    for path in paths:
        if not path.exists():
            rprint(f"[red]File not found: {path}[/red]")
            raise typer.Exit(1)

    metrics = None
    if procurement is not None:
        try:
            with open(procurement, encoding="utf-8") as f:
                metrics = ProcurementMetrics.model_validate(json.load(f))
        except (OSError, ValueError) as e:
            rprint(f"[red]Invalid procurement metrics: {e}[/red]")
            raise typer.Exit(1)

    documents, load_errors = load_documents(paths)
    result = distill_documents(
        documents,
        target=target,
        procurement_metrics=metrics,
        settings=settings,
        created_at=run_clock,
        budget=budget,
        load_errors=load_errors,
    )
    manifest = result.manifest

    if as_json:
        console.print_json(manifest.model_dump_json())
    else:
        rprint(f"\n[bold]Run {manifest.run_id}[/bold] · {manifest.target_id} ({manifest.target_name})")
        stats = manifest.stats
        rprint(
            f"  Chunks: {stats.chunks_processed} processed, {stats.chunks_kept} kept · "
            f"Cards: {stats.cards_generated} generated, {stats.cards_deduplicated} deduplicated · "
            f"Reduction: {stats.reduction_ratio:.0%}"
        )

        table = RichTable(title="Theme Coverage")
        table.add_column("Theme", style="cyan")
        table.add_column("Candidates", justify="right")
        table.add_column("Kept", justify="right")
        table.add_column("High-signal", justify="right")
        for theme, coverage in result.coverage.per_theme.items():
            table.add_row(
                theme,
                str(coverage.candidates),
                str(coverage.kept),
                str(result.evidence.theme_counts.get(theme, 0)),
            )
        console.print(table)

        if result.prompts:
            prompt_table = RichTable(title="Prompt Blocks")
            prompt_table.add_column("Type", style="cyan")
            prompt_table.add_column("Chars", justify="right")
            prompt_table.add_column("Budget", justify="right")
            prompt_table.add_column("~Tokens", justify="right")
            prompt_table.add_column("Cards", justify="right")
            prompt_table.add_column("Shrink")
            for prompt_type, prompt in result.prompts.items():
                prompt_table.add_row(
                    prompt_type,
                    str(prompt.char_count),
                    str(prompt.max_chars),
                    str(estimate_tokens(prompt.text)),
                    str(prompt.cards_used),
                    ", ".join(prompt.shrink_steps) or "-",
                )
            console.print(prompt_table)

        banner = result.banner
        rprint(f"\n[{banner.color}]{banner.title}[/{banner.color}] {banner.message}")
        for action in banner.actions:
            rprint(f"  • {action}")
        rprint(f"  [dim]{banner.diagnostics}[/dim]")

        for error in manifest.errors:
            rprint(f"[red]✗ {error}[/red]")

    written = save_run_artifacts(result, output or Path(settings.output_dir))
    if not as_json:
        rprint(f"\n[green]✓ Saved:[/green] {written['evidence']}")

    if strict and result.severity == Severity.POOR:
        raise typer.Exit(2)


@app.command()
def profiles():
    """
    List target profiles and their limits.
    """
    from ..config.profiles import build_profile, known_targets, load_profiles
    from ..config.settings import get_settings

    settings = get_settings()
    specs = load_profiles(settings.profiles_path) if settings.has_profile_file() else None

    table = RichTable(title="Target Profiles")
    table.add_column("Target", style="cyan")
    table.add_column("Name")
    table.add_column("Max cards", justify="right")
    table.add_column("Per doc", justify="right")
    table.add_column("Weights (spec/comp/budget)")
    table.add_column("Aliases")

    for target_id in known_targets(specs):
        profile = build_profile(target_id, (specs or {}).get(target_id))
        weights = profile.scoring_weights
        table.add_row(
            target_id,
            profile.target_name,
            str(profile.max_cards),
            str(profile.max_per_document),
            f"{weights.specificity:.2f} / {weights.compliance:.2f} / {weights.budget:.2f}",
            ", ".join(profile.aliases[:3]),
        )

    console.print(table)


@app.command()
def normalize(
    raw: str = typer.Argument(..., help="Raw agency string"),
):
    """
    Show the canonical target identifier for a raw agency string.
    """
    from ..config.profiles import load_profiles, match_target, target_full_name
    from ..config.settings import get_settings

    settings = get_settings()
    specs = load_profiles(settings.profiles_path) if settings.has_profile_file() else None

    target_id = match_target(raw, specs)
    if target_id is None:
        rprint(f"[yellow]No match for {raw!r}; runs will use the default profile[/yellow]")
        raise typer.Exit(1)

    rprint(f"[green]{target_id}[/green] ({target_full_name(target_id, specs)})")


if __name__ == "__main__":
    app()
