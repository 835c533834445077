import os

os.environ["PYGAME_HIDE_SUPPORT_PROMPT"] = "1"

import typer

from vigil.cli.commands.check import check_command
from vigil.cli.commands.mappings import mappings_command
from vigil.cli.commands.mirror import mirror_command
from vigil.cli.commands.run import run_command

app = typer.Typer()

app.command(name="mappings")(mappings_command)
app.command(name="check")(check_command)
app.command(name="mirror")(mirror_command)
app.command(name="run")(run_command)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
