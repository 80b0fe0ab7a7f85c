"""CLI entry point for retireplan."""

from __future__ import annotations

import logging
from pathlib import Path

import click

from retireplan.analytics.summary import compare
from retireplan.config.defaults import DEFAULT_AS_OF_YEAR, default_profile, default_scenario
from retireplan.core.engine import project_baseline_and_optimized, with_conversions
from retireplan.io.serialize import dump_rows_csv, dump_summary_json, load_config
from retireplan.taxes.law import PackageTaxLawProvider
from retireplan.utils.exceptions import RetireplanError


@click.group()
@click.version_option(package_name="retireplan")
def cli() -> None:
    """retireplan: year-by-year retirement tax and withdrawal projections."""


@cli.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Path to JSON config file. Uses defaults if not provided.",
)
@click.option("--as-of", "as_of_year", type=int, default=None, help="First projected year.")
@click.option("--no-conversions", is_flag=True, help="Project without Roth conversions.")
@click.option(
    "--csv",
    "csv_path",
    type=click.Path(path_type=Path),
    default=None,
    help="Path to write the yearly rows as CSV.",
)
@click.option(
    "--output",
    "output_path",
    type=click.Path(path_type=Path),
    default=None,
    help="Path to write the summary JSON.",
)
@click.option(
    "--no-extrapolate",
    is_flag=True,
    help="Fail on years past the newest published tax table.",
)
@click.option("--verbose", "-v", is_flag=True, help="Log engine progress to stderr.")
def run(
    config_path: Path | None,
    as_of_year: int | None,
    no_conversions: bool,
    csv_path: Path | None,
    output_path: Path | None,
    no_extrapolate: bool,
    verbose: bool,
) -> None:
    """Run a projection and print lifetime totals."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        if config_path is not None:
            profile, scenario, config_year = load_config(config_path.read_text())
        else:
            profile, scenario = default_profile(), default_scenario()
            config_year = DEFAULT_AS_OF_YEAR
        year = as_of_year if as_of_year is not None else config_year
        if no_conversions:
            scenario = with_conversions(scenario, False)

        tax_law = PackageTaxLawProvider(
            inflation_rate=scenario.inflation_rate, extrapolate=not no_extrapolate
        )
        baseline, optimized = project_baseline_and_optimized(
            profile, scenario, as_of_year=year, tax_law=tax_law
        )
    except RetireplanError as exc:
        raise click.ClickException(str(exc)) from exc

    result = baseline if no_conversions else optimized
    comparison = compare(baseline, optimized)
    summary = comparison.baseline if no_conversions else comparison.optimized

    click.echo(f"Projection {summary.first_year}-{summary.last_year} ({summary.n_years} years)")
    click.echo(f"Lifetime tax:         ${summary.lifetime_tax:,.0f}")
    click.echo(f"Lifetime IRMAA:       ${summary.lifetime_irmaa:,.0f}")
    click.echo(f"Roth converted:       ${summary.total_roth_converted:,.0f}")
    click.echo(f"Final balance:        ${summary.final_total_balance:,.0f}")
    if not no_conversions:
        click.echo(f"Savings vs baseline:  ${comparison.lifetime_savings:,.0f}")
    if summary.first_shortfall_year is not None:
        click.echo(f"Expenses unfunded from {summary.first_shortfall_year}")

    if csv_path is not None:
        csv_path.write_text(dump_rows_csv(result))
        click.echo(f"\nRows written to {csv_path}")
    if output_path is not None:
        output_path.write_text(dump_summary_json(summary))
        click.echo(f"\nSummary written to {output_path}")


if __name__ == "__main__":
    cli()
