"""Engine settings with YAML overrides."""
import logging
import os
from dataclasses import dataclass, field, fields
from datetime import date, datetime
from pathlib import Path
from zoneinfo import ZoneInfo

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = str(Path.home() / ".lms_engine" / "config.yaml")
CONFIG_ENV_VAR = "LMS_ENGINE_CONFIG"

DEFAULT_XP_AWARDS = {
    "course_complete": 200,
    "module_complete": 50,
    "quiz_pass": 25,
    "perfect_score": 50,
    "streak_bonus": 10,
}


@dataclass
class EngineConfig:
    xp_awards: dict = field(default_factory=lambda: dict(DEFAULT_XP_AWARDS))
    daily_goal_minutes: int = 15
    streak_timezone: str = "UTC"
    initial_streak_freezes: int = 2
    normalize_short_answers: bool = False
    goal_category: str = "Skill Development"
    goal_progress_step: int = 25

    def xp_for(self, award_type: str) -> int:
        return int(self.xp_awards.get(award_type, 0))

    def local_date(self, moment: datetime) -> date:
        """Calendar day of ``moment`` in the streak timezone."""
        return moment.astimezone(ZoneInfo(self.streak_timezone)).date()


def load_config(path: str | None = None) -> EngineConfig:
    """Load settings from YAML, falling back to defaults for missing keys."""
    path = path or os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH
    config = EngineConfig()
    if not Path(path).exists():
        return config
    data = yaml.safe_load(Path(path).read_text()) or {}
    known = {f.name for f in fields(EngineConfig)}
    for key, value in data.items():
        if key not in known:
            logger.warning("Ignoring unknown config key %r in %s", key, path)
            continue
        if key == "xp_awards":
            merged = dict(DEFAULT_XP_AWARDS)
            merged.update(value or {})
            value = merged
        setattr(config, key, value)
    ZoneInfo(config.streak_timezone)  # fail early on a bad zone name
    return config
