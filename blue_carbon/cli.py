import asyncio
import logging

import typer
from typing_extensions import Annotated
from rich.console import Console
from rich.table import Table

from blue_carbon.client.blue_carbon import BlueCarbonMRV
from blue_carbon.domains.certificates import IssuanceEventType
from blue_carbon.domains.projects import Actor, ActorRole
from blue_carbon.exceptions import BlueCarbonError
from blue_carbon.services.revenue import RevenueDistributor
from blue_carbon.services.sequestration import SequestrationCalculator

# --- Basic Logging Configuration ---
logging.basicConfig(level=logging.WARNING, format="%(levelname)s:%(name)s:%(message)s")
# --- End Logging Configuration ---

app = typer.Typer()
console = Console()


@app.command()
def estimate(
    ecosystem: Annotated[str, typer.Argument(help="Mangrove, Seagrass, SaltMarsh, CoralReef or Estuary.")],
    hectares: Annotated[float, typer.Argument(help="Restored area in hectares.")],
):
    """Estimate the credits a restored area generates per year."""
    calculator = SequestrationCalculator()
    try:
        credits = calculator.estimate_credits(ecosystem, hectares)
        rate = calculator.annual_rate(ecosystem)
    except BlueCarbonError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(code=1)

    console.print(
        f"[green]{hectares:g} ha[/green] of {ecosystem} at {rate:g} tCO2e/ha/yr "
        f"-> [bold]{credits:,} tCO2e[/bold]"
    )


@app.command()
def distribute(
    credits: Annotated[str, typer.Argument(help="Credit quantity in tCO2e.")],
    rate: Annotated[str, typer.Argument(help="Market rate per credit.")],
):
    """Split credit value among the Panchayat, workers and NCCR."""
    distributor = RevenueDistributor()
    try:
        split = distributor.distribute(credits, rate)
    except BlueCarbonError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(code=1)

    policy = distributor.policy
    table = Table(title=f"Revenue for {credits} credits at {rate}")
    table.add_column("Stakeholder")
    table.add_column("Percent", justify="right")
    table.add_column("Share", justify="right")
    table.add_row("Panchayat", f"{policy.panchayat_percent}%", f"{split.panchayat_share:,}")
    table.add_row("Workers", f"{policy.worker_percent}%", f"{split.worker_share:,}")
    table.add_row("NCCR", f"{policy.nccr_percent}%", f"{split.nccr_share:,}")
    table.add_row("[bold]Total[/bold]", "100%", f"[bold]{split.total_value:,}[/bold]")
    console.print(table)


async def run_issuance(client: BlueCarbonMRV, project_id: str, actor: Actor):
    """Stream issuance progress as "step n of 4" status lines."""
    certificate = None
    with console.status("[bold green]Starting issuance...", spinner="dots") as status:
        async for event in client.stream_issuance(project_id, actor):
            label = f"Step {event.step} of {event.total_steps}: {event.stage.value}"
            if event.type == IssuanceEventType.STARTED:
                status.update(f"[bold green]{label}[/bold green] (attempt {event.attempt})")
            elif event.type == IssuanceEventType.RETRYING:
                console.print(f"[yellow]{label} retrying:[/yellow] {event.detail}")
            elif event.type == IssuanceEventType.FAILED:
                console.print(f"[bold red]{label} failed:[/bold red] {event.detail}")
            elif event.type in (IssuanceEventType.COMPLETED, IssuanceEventType.SKIPPED):
                console.print(f"[dim]{label} {event.type.value}[/dim]")
            elif event.type == IssuanceEventType.ISSUED:
                certificate = event.certificate
    return certificate


@app.command()
def issue(
    project_id: Annotated[str, typer.Argument(help="Project to issue credits for.")],
    config: Annotated[
        str, typer.Option(help="Path to the configuration JSON file.")
    ] = "config.json",
    actor_id: Annotated[
        str, typer.Option(help="ID of the NCCR officer requesting issuance.")
    ] = "nccr-cli",
):
    """Issue the carbon credit certificate for a project in final verification."""
    try:
        client = BlueCarbonMRV(config_path=config)
    except FileNotFoundError:
        console.print(
            f"[bold red]Error:[/bold red] Configuration file not found at '{config}'"
        )
        raise typer.Exit(code=1)
    except ValueError as e:
        console.print(f"[bold red]Error loading configuration:[/bold red] {e}")
        raise typer.Exit(code=1)

    actor = Actor(id=actor_id, role=ActorRole.NCCR_REVIEWER)
    try:
        certificate = asyncio.run(run_issuance(client, project_id, actor))
    except BlueCarbonError as e:
        console.print(f"[bold red]Issuance failed:[/bold red] {e}")
        raise typer.Exit(code=1)

    console.print(f"[green]Certificate {certificate.certificate_id} issued[/green]")
    console.print(f"Credits: {certificate.credits_generated:,} tCO2e (vintage {certificate.vintage_year})")
    console.print(f"Ledger hash: [dim]{certificate.blockchain_hash}[/dim]")


if __name__ == "__main__":
    app()
