import json as json_lib

from rich.console import Console
import typer

from skysession.codec import join_code
from skysession.endpoint import DEFAULT_SERVER_PORT, resolve_endpoint
from skysession.errors import SkySessionError

console = Console()


def encode(
    request_id: str,
    port: int = typer.Argument(..., min=0, max=65535, help="External port"),
):
    """Print the join code for a request id and port."""
    try:
        typer.echo(join_code.encode(request_id, port))
    except SkySessionError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1) from e


def decode(
    code: str,
    domain: str = typer.Option(join_code.DEFAULT_DOMAIN, help="Host name DNS zone"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Decode a join code into host and port."""
    result = join_code.try_decode(code, domain)
    if result is None:
        console.print(f"[red]Error:[/red] Not a valid join code: {code}")
        raise typer.Exit(code=1)

    if json_output:
        typer.echo(json_lib.dumps({"host": result.host, "port": result.port}, indent=2))
        return
    typer.echo(f"{result.host}:{result.port}")


def resolve(
    address: str,
    default_port: int = typer.Option(DEFAULT_SERVER_PORT, help="Port used when none is given"),
):
    """Resolve a join code or host[:port] into host:port."""
    try:
        endpoint = resolve_endpoint(address, default_port)
    except SkySessionError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1) from e
    typer.echo(f"{endpoint.host}:{endpoint.port}")
