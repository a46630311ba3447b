import os
import sys
import math
import getpass
from dataclasses import dataclass, field
from typing import Optional, Tuple

import selector_defs as selectors
from errors import ConfigError
from punch_schedule import DEFAULT_CUTOFF_HOUR, PunchType, resolve_punch_type

DEFAULT_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"


@dataclass(frozen=True)
class SessionConfig:
    latitude: float = 17.4661607
    longitude: float = 78.2846192
    accuracy: float = 50
    login_url: str = selectors.LOGIN_URL
    landing_url: str = selectors.LANDING_URL
    timeout: float = 30
    step_delay: float = 2
    settle_delay: float = 3
    post_click_delay: float = 3
    max_page_checks: int = 3
    max_retries: int = 2
    retry_delay: float = 10
    headless: bool = True
    user_agent: str = DEFAULT_USER_AGENT
    viewport: Tuple[int, int] = (1366, 768)
    dump_dir: Optional[str] = None

    def geolocation(self) -> dict:
        return {"latitude": self.latitude, "longitude": self.longitude, "accuracy": self.accuracy}


@dataclass(frozen=True)
class Credentials:
    username: str
    password: str = field(repr=False)


@dataclass(frozen=True)
class Settings:
    session: SessionConfig
    credentials: Credentials
    punch_type: PunchType
    punch_source: str
    cutoff_hour: int = DEFAULT_CUTOFF_HOUR
    notify: bool = True


def _number(raw, name: str, cast=float):
    try:
        value = cast(raw)
    except (TypeError, ValueError, OverflowError):
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None
    if not math.isfinite(value):
        raise ConfigError(f"{name} must be a finite number, got {raw!r}")
    return value


def _pick(args: dict, key: str, environ, env_key: str):
    value = args.get(key)
    if value is not None and value != "":
        return value
    value = environ.get(env_key, "")
    return value if value.strip() else None


def load_settings(args: dict, environ=None, now=None, prompt_password: Optional[bool] = None) -> Settings:
    """Build the run's immutable settings: CLI args over environment over defaults."""
    if environ is None:
        environ = os.environ
    defaults = SessionConfig()

    def number(key, env_key, default, cast=float):
        raw = _pick(args, key, environ, env_key)
        return default if raw is None else _number(raw, env_key, cast)

    max_retries = number("max_retries", "ADP_MAX_RETRIES", defaults.max_retries, int)
    if max_retries < 1:
        raise ConfigError("ADP_MAX_RETRIES must be at least 1")
    retry_delay = number("retry_delay", "ADP_RETRY_DELAY", defaults.retry_delay)
    if retry_delay < 0:
        raise ConfigError("ADP_RETRY_DELAY cannot be negative")
    cutoff_hour = number("cutoff_hour", "ADP_PUNCH_CUTOFF_HOUR", DEFAULT_CUTOFF_HOUR, int)
    if not 0 <= cutoff_hour <= 24:
        raise ConfigError("ADP_PUNCH_CUTOFF_HOUR must be between 0 and 24")

    latitude = number("latitude", "ADP_LATITUDE", defaults.latitude)
    if not -90 <= latitude <= 90:
        raise ConfigError("ADP_LATITUDE must be between -90 and 90")
    longitude = number("longitude", "ADP_LONGITUDE", defaults.longitude)
    if not -180 <= longitude <= 180:
        raise ConfigError("ADP_LONGITUDE must be between -180 and 180")
    accuracy = number("accuracy", "ADP_ACCURACY", defaults.accuracy)
    if accuracy < 0:
        raise ConfigError("ADP_ACCURACY cannot be negative")

    session = SessionConfig(
        latitude=latitude,
        longitude=longitude,
        accuracy=accuracy,
        max_retries=max_retries,
        retry_delay=retry_delay,
        headless=not args.get("headed", False),
        dump_dir=_pick(args, "dump_dir", environ, "ADP_DUMP_DIR"),
    )

    username = _pick(args, "username", environ, "ADP_USERNAME") or ""
    password = environ.get("ADP_PASSWORD", "")
    if prompt_password is None:
        prompt_password = sys.stdin is not None and sys.stdin.isatty()
    if not password and prompt_password:
        password = getpass.getpass(prompt="ADP Password: ", stream=None)
    if not username:
        raise ConfigError("Be sure to set your username (or ADP_USERNAME env var).")
    if not password:
        raise ConfigError("Be sure to set your password (or ADP_PASSWORD env var).")

    explicit = args.get("punch") or environ.get("PUNCH_TYPE", "").strip()
    try:
        punch_type, source = resolve_punch_type(explicit, now=now, cutoff_hour=cutoff_hour)
    except ValueError as e:
        raise ConfigError(str(e)) from None
    if source == "explicit":
        source = "cli" if args.get("punch") else "env"

    return Settings(
        session=session,
        credentials=Credentials(username=username, password=password),
        punch_type=punch_type,
        punch_source=source,
        cutoff_hour=cutoff_hour,
        notify=not args.get("no_notify", False),
    )
