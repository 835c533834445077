import typer

from vigil.peripheral.gamepad.mirror import InputMirror, MirrorState
from vigil.runtime.container import build_runtime_container
from vigil.utilities.logging import get_logger

logger = get_logger(__name__)

JOIN_INTERVAL_SECONDS = 0.5


def mirror_command() -> None:
    """Mirror the first physical controller until interrupted."""

    resolver = build_runtime_container()
    mirror = resolver.resolve(InputMirror)
    subscription = mirror.updates.subscribe(
        lambda status: typer.echo(f"[{status.state.value}] {status.message}")
    )
    try:
        if not mirror.start():
            raise typer.Exit(code=1)
        while not mirror.join(JOIN_INTERVAL_SECONDS):
            pass
    except KeyboardInterrupt:
        logger.info("Interrupted; stopping the controller mirror")
    finally:
        mirror.dispose()
        subscription.dispose()

    if mirror.state in (MirrorState.FAILED, MirrorState.NO_DEVICE_FOUND):
        raise typer.Exit(code=1)
