import os
from pathlib import Path

from vigil.utilities.env.parsing import _env_flag, _env_int


class SystemConfiguration:
    @classmethod
    def close_on_exit(cls) -> bool:
        return _env_flag("VIGIL_CLOSE_ON_EXIT")

    @classmethod
    def rule_tick_interval_ms(cls) -> int:
        return _env_int("VIGIL_RULE_TICK_MS", default=50, minimum=1)

    @classmethod
    def rule_profile_path(cls) -> Path:
        raw = os.environ.get("VIGIL_RULE_PROFILE")
        if raw:
            return Path(raw).expanduser()
        return Path.home() / ".vigil" / "rules.json"
