import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off")


def _float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


def _int(name: str, default: int, allow_zero: bool = False) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value < 0 or (value == 0 and not allow_zero):
        raise ValueError(f"{name} out of range: {raw!r}")
    return value


def _bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    lowered = raw.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


@dataclass(frozen=True)
class Settings:
    api_url: str = "http://localhost:5000"
    poll_interval: float = 5.0
    stats_window: int = 60
    default_limit: int = 50
    history_cap: Optional[int] = 5000
    request_timeout: float = 5.0
    realtime: bool = True
    reconnect_delay: float = 1.0
    reconnect_delay_max: float = 30.0

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "Settings":
        if dotenv:
            load_dotenv()
        cap = _int("LOGVIEW_HISTORY_CAP", 5000, allow_zero=True)
        return cls(
            api_url=os.getenv("LOGVIEW_API_URL", cls.api_url).rstrip("/"),
            poll_interval=_float("LOGVIEW_POLL_INTERVAL", cls.poll_interval),
            stats_window=_int("LOGVIEW_STATS_WINDOW", cls.stats_window),
            default_limit=_int("LOGVIEW_DEFAULT_LIMIT", cls.default_limit),
            history_cap=cap or None,
            request_timeout=_float("LOGVIEW_REQUEST_TIMEOUT", cls.request_timeout),
            realtime=_bool("LOGVIEW_REALTIME", cls.realtime),
            reconnect_delay=_float("LOGVIEW_RECONNECT_DELAY", cls.reconnect_delay),
            reconnect_delay_max=_float("LOGVIEW_RECONNECT_DELAY_MAX", cls.reconnect_delay_max),
        )
