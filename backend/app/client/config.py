import os
from dataclasses import dataclass

DEFAULT_API_URL = "http://localhost:8000"


def _read_float_env(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be a number") from exc


def _read_int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer") from exc


def ApiUrl() -> str:
    return (os.getenv("SHOPLIST_API_URL", "").strip() or DEFAULT_API_URL).rstrip("/")


@dataclass
class SyncSettings:
    PollInterval: float | None = 5.0
    ReconnectDelay: float = 2.0
    MaxReconnectAttempts: int = 3
    CorrectionDelay: float = 1.0
    JoinTimeout: float = 10.0

    @classmethod
    def FromEnv(cls) -> "SyncSettings":
        poll_seconds = _read_float_env("SHOPLIST_POLL_SECONDS", 5.0)
        return cls(
            PollInterval=poll_seconds if poll_seconds > 0 else None,
            ReconnectDelay=_read_float_env("SHOPLIST_RECONNECT_DELAY_SECONDS", 2.0),
            MaxReconnectAttempts=_read_int_env("SHOPLIST_MAX_RECONNECT_ATTEMPTS", 3),
            CorrectionDelay=_read_float_env("SHOPLIST_CORRECTION_DELAY_SECONDS", 1.0),
            JoinTimeout=_read_float_env("SHOPLIST_JOIN_TIMEOUT_SECONDS", 10.0),
        )
