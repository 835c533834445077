import pytest

from vigil.rules.errors import ScriptError
from vigil.rules.script import (BuffSet, FlaskState, ScriptEvaluator,
                                bindings_from_snapshot, build_bindings,
                                compile_script, translate)


@pytest.fixture
def bindings() -> dict:
    return build_bindings(
        health_percent=60,
        mana_percent=20,
        flasks={1: FlaskState(is_usable=True, active=False), 2: FlaskState(True, True)},
        buffs=["Onslaught", "Bleeding"],
    )


class TestTranslate:
    """Group translation tests so C-like operators map onto Python without touching literals."""

    @pytest.mark.parametrize(
        ("script", "expected"),
        [
            ("a && b", "a  and  b"),
            ("a || !b", "a  or   not b"),
            ("a != b", "a != b"),
            ("true && false", "True  and  False"),
            ('Has("a && !b")', 'Has("a && !b")'),
            ("Has('x || y')", "Has('x || y')"),
            ("untrue", "untrue"),
        ],
    )
    def test_translate(self, script: str, expected: str) -> None:
        assert translate(script) == expected


class TestScriptEvaluator:
    """Group evaluation tests so condition scripts read the bindings they name."""

    @pytest.mark.parametrize(
        ("script", "expected"),
        [
            ("PlayerVitals.HP.Percent <= 80", True),
            ("PlayerVitals.HP.Percent <= 80 && PlayerVitals.MANA.Percent >= 30", False),
            ("PlayerVitals.HP.Percent <= 50 || Flasks.Flask1.IsUsable", True),
            ("Flasks.Flask1.IsUsable && !Flasks.Flask1.Active", True),
            ("!Flasks.Flask2.Active", False),
            ('PlayerBuffs.Has("Onslaught")', True),
            ('!PlayerBuffs.Has("Frozen")', True),
            ("PlayerVitals.MANA.Percent == 20 && PlayerVitals.HP.Percent != 61", True),
            ("0 < PlayerVitals.HP.Percent < 100", True),
            ("PlayerVitals.HP.Percent > -1", True),
            ("true", True),
            ("false", False),
            ("Flasks.Flask5.IsUsable", False),
        ],
    )
    def test_evaluate(self, bindings: dict, script: str, expected: bool) -> None:
        assert ScriptEvaluator().evaluate(script, bindings) is expected

    @pytest.mark.parametrize(
        "script",
        [
            "PlayerVitals.HP.Percent <=",
            "__import__('os').system('echo')",
            "PlayerBuffs._names",
            "PlayerBuffs.Has(name='x')",
            "[1, 2]",
            "PlayerVitals.HP.Percent + 1 > 0",
            "lambda: True",
            "None",
        ],
    )
    def test_rejected_scripts(self, bindings: dict, script: str) -> None:
        """Verify that malformed or unsafe scripts raise ``ScriptError`` instead of running."""
        with pytest.raises(ScriptError):
            ScriptEvaluator().evaluate(script, bindings)

    def test_unknown_binding_is_reported(self, bindings: dict) -> None:
        with pytest.raises(ScriptError, match="Unknown binding 'Stamina'"):
            ScriptEvaluator().evaluate("PlayerVitals.Stamina.Percent > 1", bindings)

    def test_runtime_errors_are_wrapped(self, bindings: dict) -> None:
        """Ensure type errors raised while evaluating surface as ``ScriptError``."""
        with pytest.raises(ScriptError):
            ScriptEvaluator().evaluate('PlayerVitals.HP.Percent < "ten"', bindings)

    def test_calling_a_value_is_rejected(self, bindings: dict) -> None:
        with pytest.raises(ScriptError, match="not callable"):
            ScriptEvaluator().evaluate("PlayerVitals.HP.Percent(1)", bindings)

    def test_compiled_scripts_are_cached(self) -> None:
        assert compile_script("true && false") is compile_script("true && false")


class TestBindings:
    """Group bindings tests so snapshots produce the namespace scripts expect."""

    def test_unlisted_flasks_default_to_unusable(self) -> None:
        bindings = build_bindings(health_percent=100, mana_percent=100)

        assert bindings["Flasks"]["Flask4"] == {"IsUsable": False, "Active": False}
        assert set(bindings["Flasks"]) == {f"Flask{slot}" for slot in range(1, 6)}

    def test_buff_set_membership(self) -> None:
        buffs = BuffSet(["Onslaught"])

        assert buffs.Has("Onslaught")
        assert "Onslaught" in buffs
        assert not buffs.Has("onslaught")

    def test_snapshot_builds_bindings(self) -> None:
        bindings = bindings_from_snapshot(
            {
                "health_percent": 75,
                "mana_percent": "40",
                "flasks": {"1": {"usable": True}, "3": {"usable": True, "active": True}},
                "buffs": ["Onslaught"],
            }
        )

        assert bindings["PlayerVitals"]["HP"]["Percent"] == 75.0
        assert bindings["PlayerVitals"]["MANA"]["Percent"] == 40.0
        assert bindings["Flasks"]["Flask1"] == {"IsUsable": True, "Active": False}
        assert bindings["Flasks"]["Flask3"] == {"IsUsable": True, "Active": True}
        assert bindings["PlayerBuffs"].Has("Onslaught")

    def test_empty_snapshot_assumes_full_vitals(self) -> None:
        bindings = bindings_from_snapshot({})

        assert bindings["PlayerVitals"]["HP"]["Percent"] == 100.0
        assert not bindings["PlayerBuffs"].Has("Onslaught")

    @pytest.mark.parametrize(
        "payload",
        [
            {"health_percent": "lots"},
            {"flasks": {"one": {"usable": True}}},
            {"flasks": {"1": True}},
            {"flasks": [1, 2]},
        ],
    )
    def test_malformed_snapshot_is_rejected(self, payload: dict) -> None:
        with pytest.raises(ScriptError):
            bindings_from_snapshot(payload)
