"""Runtime settings for the Order subsystem, read from ``ORDERING_*`` variables."""

import os
from dataclasses import dataclass


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    return float(value) if value not in (None, "") else default


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    return int(value) if value not in (None, "") else default


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value in (None, ""):
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    command_timeout: float = 5.0
    query_timeout: float = 3.0
    lock_timeout: float = 2.0
    persist_attempts: int = 3
    publish_attempts: int = 3
    backoff_base: float = 0.05
    backoff_max: float = 1.0
    dispatch_on_commit: bool = True
    dispatch_interval: float = 0.5
    background_dispatch: bool = True
    dispatch_batch_size: int = 100
    default_transit_days: int = 5
    channel: str = "memory"  # memory | broker
    channel_stream: str = "ordering::order_events"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            command_timeout=_env_float("ORDERING_COMMAND_TIMEOUT", cls.command_timeout),
            query_timeout=_env_float("ORDERING_QUERY_TIMEOUT", cls.query_timeout),
            lock_timeout=_env_float("ORDERING_LOCK_TIMEOUT", cls.lock_timeout),
            persist_attempts=_env_int("ORDERING_PERSIST_ATTEMPTS", cls.persist_attempts),
            publish_attempts=_env_int("ORDERING_PUBLISH_ATTEMPTS", cls.publish_attempts),
            backoff_base=_env_float("ORDERING_BACKOFF_BASE", cls.backoff_base),
            backoff_max=_env_float("ORDERING_BACKOFF_MAX", cls.backoff_max),
            dispatch_on_commit=_env_bool("ORDERING_DISPATCH_ON_COMMIT", cls.dispatch_on_commit),
            dispatch_interval=_env_float("ORDERING_DISPATCH_INTERVAL", cls.dispatch_interval),
            background_dispatch=_env_bool("ORDERING_BACKGROUND_DISPATCH", cls.background_dispatch),
            dispatch_batch_size=_env_int("ORDERING_DISPATCH_BATCH_SIZE", cls.dispatch_batch_size),
            default_transit_days=_env_int("ORDERING_DEFAULT_TRANSIT_DAYS", cls.default_transit_days),
            channel=os.environ.get("ORDERING_CHANNEL", cls.channel),
            channel_stream=os.environ.get("ORDERING_CHANNEL_STREAM", cls.channel_stream),
        )


def backoff_delay(attempt: int, base: float, ceiling: float) -> float:
    """Exponential delay before retry number ``attempt`` (0-based), capped at ``ceiling``."""
    return min(base * (2**attempt), ceiling)
