import json
from pathlib import Path

import pytest

from vigil.peripheral.gamepad.virtual import VirtualButton
from vigil.rules.errors import RuleError
from vigil.rules.profile import load_profile, save_profile
from vigil.rules.rule import ActionType, Rule


class TestRuleProfile:
    """Group profile persistence tests so rule sets survive a save and reload."""

    def test_missing_profile_yields_default_rules(self, tmp_path: Path) -> None:
        rules = load_profile(tmp_path / "absent.json")

        assert [rule.name for rule in rules] == ["LifeFlask", "ManaFlask"]

    def test_saved_profile_reloads_identically(self, tmp_path: Path) -> None:
        """Verify that saving then loading reproduces every rule's stored fields."""
        path = tmp_path / "nested" / "rules.json"
        rules = [
            Rule("Dodge", enabled=True, action_type=ActionType.CONTROLLER,
                 controller_button=VirtualButton.B, cooldown_seconds=0.5),
            Rule("Quicksilver", key="5", advanced_script="true", use_simple_editor=False),
        ]

        save_profile(path, rules)
        reloaded = load_profile(path)

        assert [rule.to_dict() for rule in reloaded] == [rule.to_dict() for rule in rules]
        assert json.loads(path.read_text(encoding="utf-8"))[0]["Name"] == "Dodge"

    @pytest.mark.parametrize(
        "content",
        ["{not json", json.dumps({"Name": "x"}), json.dumps(["LifeFlask"])],
    )
    def test_invalid_profiles_raise_rule_error(self, tmp_path: Path, content: str) -> None:
        path = tmp_path / "rules.json"
        path.write_text(content, encoding="utf-8")

        with pytest.raises(RuleError):
            load_profile(path)
