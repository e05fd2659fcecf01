"""Process configuration from the environment.

Every value has a documented default; invalid values are fatal at startup.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .core import CfgErr


class Settings(BaseSettings):
    """Typed settings.

    Attributes:
        rate_limit: Requests allowed per rate window.
        rate_window: Rate window length, seconds.
        locale_threshold: Distinct locales that trigger a scraping ban.
        locale_min_hits: Hits a locale needs before it counts.
        locale_window: Locale window length, seconds.
        ban_duration: Ban lifetime, seconds.
        ban_file: JSON file holding bans.
        log_dir: Directory for block logs and daily summaries ("" disables).
        rules_file: Optional JSON rule overrides ("" uses defaults).
        purge_interval: Seconds between stale-counter purges.
        contact_email: Address shown on block pages.
        host: Listen host.
        port: Listen port.
    """

    rate_limit: int = Field(default=30, ge=0, alias="RATE_LIMIT")
    rate_window: float = Field(default=60, gt=0, alias="RATE_WINDOW")
    locale_threshold: int = Field(default=4, ge=1, alias="LOCALE_THRESHOLD")
    locale_min_hits: int = Field(default=3, ge=1, alias="LOCALE_MIN_HITS")
    locale_window: float = Field(default=300, gt=0, alias="LOCALE_WINDOW")
    ban_duration: float = Field(default=7 * 86400, gt=0, alias="BAN_DURATION")
    ban_file: str = Field(default="/var/lib/bot-blocker/bans.json", alias="BAN_FILE")
    log_dir: str = Field(default="/var/log/bot-blocker", alias="LOG_DIR")
    rules_file: str = Field(default="", alias="RULES_FILE")
    purge_interval: float = Field(default=300, gt=0, alias="PURGE_INTERVAL")
    contact_email: str = Field(default="abuse@example.com", alias="CONTACT_EMAIL")
    host: str = Field(default="127.0.0.1", alias="HOST")
    port: int = Field(default=3000, ge=1, le=65535, alias="PORT")

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    @property
    def ban_path(self) -> Path | None:
        return Path(self.ban_file) if self.ban_file.strip() else None

    @property
    def log_path(self) -> Path | None:
        return Path(self.log_dir) if self.log_dir.strip() else None

    @property
    def rules_path(self) -> Path | None:
        return Path(self.rules_file) if self.rules_file.strip() else None


def ld_cfg(**over: Any) -> Settings:
    """Load settings from env (and .env), with explicit overrides.

    Args:
        **over: Field values that win over the environment.

    Returns:
        Settings.

    Raises:
        CfgErr: If a value is invalid.
    """
    try:
        return Settings(**over)
    except ValidationError as e:
        errs = "; ".join(f"{'.'.join(map(str, x['loc']))}: {x['msg']}" for x in e.errors())
        raise CfgErr(f"bad config: {errs}") from e
