"""Runtime settings read from the environment (and a local .env file)."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

DEFAULT_HOME = Path.home() / ".config" / "promptqueue"
DEFAULT_LOCALE = "en"
LOCALES = ("en", "zh")

# Substituted for {{char}} / {{user}} when no persona is selected
FALLBACK_NAMES = {
    "en": ("AI", "User"),
    "zh": ("AI", "用户"),
}


@dataclass
class Settings:
    home: Path
    db_path: Path
    locale: str = DEFAULT_LOCALE
    char_fallback: str = "AI"
    user_fallback: str = "User"

    @classmethod
    def from_env(cls, environ: dict | None = None) -> Settings:
        env = os.environ if environ is None else environ

        home = Path(env.get("PROMPTQUEUE_HOME") or DEFAULT_HOME).expanduser()
        db_path = Path(env.get("PROMPTQUEUE_DB") or home / "promptqueue.db").expanduser()

        locale = (env.get("PROMPTQUEUE_LOCALE") or DEFAULT_LOCALE).lower()
        if locale not in LOCALES:
            locale = DEFAULT_LOCALE

        char_default, user_default = FALLBACK_NAMES[locale]
        return cls(
            home=home,
            db_path=db_path,
            locale=locale,
            char_fallback=env.get("PROMPTQUEUE_CHAR_FALLBACK") or char_default,
            user_fallback=env.get("PROMPTQUEUE_USER_FALLBACK") or user_default,
        )
