import typer

from vigil.peripheral.gamepad.mapping import (describe_button_map,
                                              describe_pov_sectors)


def mappings_command() -> None:
    typer.echo("Physical button -> virtual button")
    for index, button in describe_button_map():
        typer.echo(f"  {index:>2} -> {button}")
    typer.echo("POV centidegrees -> direction")
    for button, ranges in describe_pov_sectors():
        typer.echo(f"  {button:<5} {ranges}")
