import typer

from skysession.cli.commands.codes import decode, encode, resolve
from skysession.cli.commands.session import deploy, teardown
from skysession.logging_config import setup_logging

app = typer.Typer(
    name="skysession",
    help="Deploy, share, join, and tear down game server sessions",
    add_completion=False,
)

app.command()(deploy)
app.command()(teardown)
app.command()(encode)
app.command()(decode)
app.command()(resolve)


@app.callback()
def main(
    log_level: str = typer.Option("WARNING", envvar="LOG_LEVEL", help="Log level"),
):
    """Configure logging before any command runs."""
    setup_logging(service_name="skysession-cli", log_level=log_level)


if __name__ == "__main__":
    app()
