import pytest
from hypothesis import HealthCheck, settings

from vigil.utilities.logging_control import get_logging_controller

settings.register_profile(
    "default",
    suppress_health_check=[HealthCheck.function_scoped_fixture],
    deadline=None,
)
settings.load_profile("default")


@pytest.fixture(autouse=True)
def dummy_sdl_drivers(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep pygame headless so joystick code never needs a display."""

    monkeypatch.setenv("SDL_VIDEODRIVER", "dummy")
    monkeypatch.setenv("SDL_AUDIODRIVER", "dummy")
    yield


@pytest.fixture(autouse=True)
def isolated_log_directory(monkeypatch: pytest.MonkeyPatch, tmp_path_factory) -> None:
    monkeypatch.setenv("VIGIL_LOG_DIR", str(tmp_path_factory.getbasetemp() / "logs"))
    yield


@pytest.fixture(autouse=True)
def fresh_logging_controller() -> None:
    """Drop the cached sampling controller so sampled logs are not suppressed across tests."""

    get_logging_controller.cache_clear()
    yield
    get_logging_controller.cache_clear()
