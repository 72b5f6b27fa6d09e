"""blockput CLI entry point."""

import typer

from blockput import __version__
from blockput.cli.profile_commands import profile_app
from blockput.cli.progress_commands import progress_app
from blockput.cli.upload_commands import commit, upload

app = typer.Typer(add_completion=False, help="Resumable block uploads.")


def _version_callback(value: bool) -> bool:
    if value:
        typer.echo(__version__)
        raise typer.Exit()
    return value


@app.callback()
def callback(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        help="Show the blockput version and exit.",
        callback=_version_callback,
        is_eager=True,
        is_flag=True,
    ),
) -> None:
    """Handle global CLI option for --version."""
    return None


app.command("upload")(upload)
app.command("commit")(commit)
app.add_typer(progress_app, name="progress")
app.add_typer(profile_app, name="profile")


def main() -> None:
    """Run the blockput CLI."""
    app()


if __name__ == "__main__":
    main()
