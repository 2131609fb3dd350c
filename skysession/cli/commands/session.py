import asyncio
import json as json_lib

import httpx
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table
import typer

from skysession.clients.teardown import AuthenticatedDeleteClient
from skysession.config import TeardownSettings, get_settings
from skysession.deployer import DeploymentOrchestrator, DeploymentState
from skysession.errors import SkySessionError
from skysession.schemas import DeleteOutcome, DeployResult

console = Console()

_STATE_MESSAGES = {
    DeploymentState.CREATING: "Requesting deployment...",
    DeploymentState.POLLING: "Waiting for deployment to become ready...",
}


async def _deploy() -> DeployResult:
    settings = get_settings()
    async with httpx.AsyncClient(timeout=settings.request_timeout_seconds) as http:
        with console.status("Starting...") as status:

            def show(state: DeploymentState) -> None:
                if state in _STATE_MESSAGES:
                    status.update(_STATE_MESSAGES[state])

            orchestrator = DeploymentOrchestrator(settings, http, on_state_change=show)
            return await orchestrator.create_and_wait()


async def _teardown() -> DeleteOutcome:
    settings = TeardownSettings()
    async with httpx.AsyncClient() as http:
        return await AuthenticatedDeleteClient(http).delete(settings.delete_url, settings.delete_token)


def deploy(
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Deploy a game server and print its join code."""
    try:
        result = asyncio.run(_deploy())
    except (SkySessionError, ValidationError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1) from e

    if json_output:
        typer.echo(json_lib.dumps(result.model_dump(), indent=2))
        return

    table = Table(title="Deployment ready")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Request ID", result.request_id)
    table.add_row("FQDN", result.fqdn)
    table.add_row("Port", str(result.external_port))
    table.add_row("Join code", result.join_code)
    console.print(table)


def teardown():
    """Delete the deployment configured in ARBITRIUM_DELETE_URL."""
    try:
        outcome = asyncio.run(_teardown())
    except SkySessionError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1) from e

    if not outcome.ok:
        console.print(f"[red]Error:[/red] Stop failed: {outcome.status_code} {outcome.body}")
        raise typer.Exit(code=1)
    console.print(
        f"[green]✓[/green] Deployment stop requested ({outcome.status_code}, {outcome.scheme.value} auth)"
    )
