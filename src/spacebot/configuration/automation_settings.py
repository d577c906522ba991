from typing import Any, Dict

DEFAULT_EMBED_COLOR = 0x5865F2


class AutomationSettings:
    """Helper exposing typed accessors for the ``automation`` config section.

    Values in the YAML file may be strings or missing entirely; every property
    coerces to its expected type and falls back to the built-in default.
    """

    def __init__(self, data: Dict[str, Any] | None = None) -> None:
        self.data: Dict[str, Any] = data or {}

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value for `key` or `default` if missing."""
        return self.data.get(key, default)

    def _number(self, key: str, default: float) -> float:
        try:
            return float(self.data.get(key, default))
        except (TypeError, ValueError):
            return default

    @property
    def deletion_pacing_seconds(self) -> float:
        """Delay between two individual (non-bulk) message deletions."""
        return max(0.0, self._number("deletion_pacing_seconds", 0.5))

    @property
    def bulk_delete_max_age_days(self) -> float:
        return self._number("bulk_delete_max_age_days", 14)

    @property
    def history_fetch_limit(self) -> int:
        return int(self._number("history_fetch_limit", 100))

    @property
    def embed_color(self) -> int:
        value = self.data.get("embed_color", DEFAULT_EMBED_COLOR)
        if isinstance(value, str):
            try:
                return int(value.lstrip("#"), 16)
            except ValueError:
                return DEFAULT_EMBED_COLOR
        return int(value) if isinstance(value, int) else DEFAULT_EMBED_COLOR

    @property
    def ignore_bot_events(self) -> bool:
        value = self.data.get("ignore_bot_events", True)
        if isinstance(value, str):
            return value.strip().lower() not in ("false", "0", "no", "off")
        return bool(value)

    @property
    def rules_cache_ttl_seconds(self) -> float:
        return max(0.0, self._number("rules_cache_ttl_seconds", 30))
