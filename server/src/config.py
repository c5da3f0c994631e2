from typing import Dict, FrozenSet, List, Optional
import json

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration sourced from environment variables or overrides."""

    base_api_url: str
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "info"

    poll_interval_ms: int = 5000
    # Each RPC call gets its own bound; expiry counts as a transport failure.
    rpc_timeout_seconds: float = 5.0

    api_key: Optional[str] = None
    cookie: Optional[str] = None

    # Accept either a raw string (from env like "staging,lab") or a list; the
    # validator below coerces into a List[str]. Declaring the union with
    # `str | List[str]` prevents pydantic-settings from attempting JSON
    # decoding on simple comma-separated env strings.
    ignore_groups: str | List[str] = []

    model_config = SettingsConfigDict(
        env_file=".env.local",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("base_api_url")
    @classmethod
    def _strip_base_url(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        if not value:
            raise ValueError("BASE_API_URL is required")
        return value

    @field_validator("poll_interval_ms")
    @classmethod
    def _positive_interval(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("POLL_INTERVAL_MS must be positive")
        return value

    @field_validator("api_key", "cookie", mode="before")
    @classmethod
    def _blank_as_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("ignore_groups", mode="before")
    @classmethod
    def _coerce_ignore_groups(cls, value):
        """Allow comma or newline separated env strings as well as JSON arrays."""
        if value in (None, ""):
            return []
        if isinstance(value, str):
            v = value.strip()
            if v.startswith("["):
                try:
                    decoded = json.loads(v)
                    if isinstance(decoded, (list, tuple)):
                        return [str(item).strip() for item in decoded if str(item).strip()]
                except ValueError:
                    # fall back to comma/newline splitting below
                    pass
            cleaned = value.replace("\n", ",")
            return [item.strip() for item in cleaned.split(",") if item.strip()]
        if isinstance(value, (tuple, set, list, frozenset)):
            return [str(item).strip() for item in value if str(item).strip()]
        return value

    @property
    def rpc_endpoint(self) -> str:
        return f"{self.base_api_url}/api/rpc2"

    @property
    def ignore_group_set(self) -> FrozenSet[str]:
        """Group labels whose nodes are left out of the aggregate status."""
        return frozenset(self.ignore_groups or [])

    @property
    def poll_interval_seconds(self) -> float:
        return self.poll_interval_ms / 1000.0

    def describe(self) -> Dict[str, str]:
        """Return a loggable view of the configuration with secrets masked."""
        groups = sorted(self.ignore_group_set)
        return {
            "BASE_API_URL": self.base_api_url,
            "POLL_INTERVAL_MS": str(self.poll_interval_ms),
            "API_KEY": "***set***" if self.api_key else "not set",
            "COOKIE": "***set***" if self.cookie else "not set",
            "IGNORE_GROUPS": ", ".join(groups) if groups else "none",
        }
