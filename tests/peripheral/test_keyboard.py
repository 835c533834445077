from types import SimpleNamespace

import pytest

from vigil.peripheral import keyboard
from vigil.peripheral.keyboard import (PynputKeyInjector,
                                       RecordingKeyInjector,
                                       normalize_key_name)


class FakeKeyboardController:
    def __init__(self) -> None:
        self.tapped: list[object] = []
        self.fail = False

    def tap(self, key: object) -> None:
        if self.fail:
            raise OSError("display went away")
        self.tapped.append(key)


def _fake_pynput(controller: FakeKeyboardController) -> SimpleNamespace:
    return SimpleNamespace(
        Controller=lambda: controller,
        Key=SimpleNamespace(f1="<f1>", space="<space>", enter="<enter>"),
    )


class TestNormalizeKeyName:
    """Group key name tests so stored profiles with legacy names keep working."""

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("1", "1"),
            ("KEY_1", "1"),
            ("VK_F1", "f1"),
            ("Space", "space"),
            ("Q", "Q"),
            (" key_2 ", "2"),
            ("KEY_", "key_"),
        ],
    )
    def test_normalize(self, name: str, expected: str) -> None:
        assert normalize_key_name(name) == expected


class TestPynputKeyInjector:
    """Group injection tests so key actions report success honestly."""

    def test_single_characters_are_tapped_directly(self) -> None:
        controller = FakeKeyboardController()
        injector = PynputKeyInjector(_fake_pynput(controller))

        assert injector.inject("1")
        assert injector.inject("KEY_2")

        assert controller.tapped == ["1", "2"]

    def test_named_keys_resolve_through_key_enum(self) -> None:
        controller = FakeKeyboardController()
        injector = PynputKeyInjector(_fake_pynput(controller))

        assert injector.inject("VK_F1")
        assert injector.inject("Enter")

        assert controller.tapped == ["<f1>", "<enter>"]

    def test_unknown_key_is_reported_as_failure(self) -> None:
        controller = FakeKeyboardController()
        injector = PynputKeyInjector(_fake_pynput(controller))

        assert injector.inject("Hyper") is False
        assert controller.tapped == []

    def test_tap_failure_is_reported_as_failure(self, caplog: pytest.LogCaptureFixture) -> None:
        """Verify that an OS-level injection error is logged and surfaces as ``False``."""
        caplog.set_level("ERROR")
        controller = FakeKeyboardController()
        controller.fail = True
        injector = PynputKeyInjector(_fake_pynput(controller))

        assert injector.inject("1") is False
        assert any("Injecting key 1 failed" in message for message in caplog.messages)

    def test_missing_backend_disables_injection(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Ensure a missing pynput install degrades to failed injections instead of import errors."""
        monkeypatch.setattr(keyboard, "optional_import", lambda *args, **kwargs: None)

        injector = PynputKeyInjector()

        assert not injector.available
        assert injector.inject("1") is False

    def test_controller_construction_failure_disables_injection(self) -> None:
        def broken() -> FakeKeyboardController:
            raise RuntimeError("no display")

        injector = PynputKeyInjector(SimpleNamespace(Controller=broken, Key=SimpleNamespace()))

        assert not injector.available
        assert injector.inject("1") is False


def test_recording_injector_remembers_keys() -> None:
    injector = RecordingKeyInjector()

    assert injector.inject("1")
    assert injector.keys == ["1"]
