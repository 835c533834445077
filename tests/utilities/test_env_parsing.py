import pytest

from vigil.utilities.env.parsing import (_env_flag, _env_float, _env_int,
                                         _env_int_list)

VAR = "VIGIL_TEST_VALUE"


class TestEnvParsing:
    """Group environment parsing tests so misconfiguration fails loudly and defaults stay stable."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("true", True), ("1", True), (" YES ", True), ("on", True), ("false", False), ("", False)],
    )
    def test_flag(self, monkeypatch: pytest.MonkeyPatch, raw: str, expected: bool) -> None:
        monkeypatch.setenv(VAR, raw)

        assert _env_flag(VAR) is expected

    def test_flag_default_applies_when_unset(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv(VAR, raising=False)

        assert _env_flag(VAR, default=True) is True

    def test_int_with_minimum(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(VAR, "16")
        assert _env_int(VAR, default=1, minimum=1) == 16

        monkeypatch.setenv(VAR, "0")
        with pytest.raises(ValueError, match="at least 1"):
            _env_int(VAR, default=1, minimum=1)

        monkeypatch.setenv(VAR, "fast")
        with pytest.raises(ValueError, match="must be an integer"):
            _env_int(VAR, default=1)

    def test_float_exclusive_minimum(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(VAR, "0.25")
        assert _env_float(VAR, default=1.0, minimum=0.0, exclusive_minimum=True) == 0.25

        monkeypatch.setenv(VAR, "0")
        with pytest.raises(ValueError, match="greater than"):
            _env_float(VAR, default=1.0, minimum=0.0, exclusive_minimum=True)

    def test_int_list(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(VAR, "0, 1, 4, 2, 3, 5")
        assert _env_int_list(VAR, default=(), length=6) == (0, 1, 4, 2, 3, 5)

        monkeypatch.setenv(VAR, "0,1,2")
        with pytest.raises(ValueError, match="exactly 6"):
            _env_int_list(VAR, default=(), length=6)

        monkeypatch.setenv(VAR, "0,1,2,3,4,-5")
        with pytest.raises(ValueError):
            _env_int_list(VAR, default=(), length=6)

    def test_blank_values_fall_back_to_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Ensure an exported but empty variable behaves like an unset one."""
        monkeypatch.setenv(VAR, "   ")

        assert _env_int(VAR, default=16, minimum=1) == 16
        assert _env_float(VAR, default=1.0) == 1.0
        assert _env_int_list(VAR, default=(0, 1), length=2) == (0, 1)
