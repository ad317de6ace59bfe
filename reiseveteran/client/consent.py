"""Cookie consent state.

ConsentStateManager owns the user's cookie-category choices. The persisted
copy in durable storage is the source of truth: every mutation writes it
first, then updates the in-memory view, then runs post-commit hooks
(analytics on/off). A hook that fails is logged and skipped; it never undoes
the write and never stops the remaining hooks.

Construct one manager at startup and pass it to whatever needs it.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from typing import Any, Callable, Iterable, List, Mapping, Optional

from reiseveteran.util.time import parse_iso, utcnow_iso_ms

from .storage import COOKIE_CONSENT_TIMESTAMP_KEY, COOKIE_PREFERENCES_KEY, DurableStorage


def _debug(msg: str) -> None:
    print(f"[consent] {msg}")


@dataclass(frozen=True)
class ConsentPreferences:
    necessary: bool = True
    analytics: bool = False
    marketing: bool = False

    def __post_init__(self) -> None:
        # Necessary cookies cannot be declined.
        object.__setattr__(self, "necessary", True)

    def merged(self, partial: Mapping[str, Any]) -> "ConsentPreferences":
        """Apply a partial update. Unknown keys and `necessary` are ignored."""
        return ConsentPreferences(
            analytics=_as_bool(partial.get("analytics", self.analytics)),
            marketing=_as_bool(partial.get("marketing", self.marketing)),
        )

    def to_json(self) -> str:
        return json.dumps(asdict(self), separators=(",", ":"))


@dataclass(frozen=True)
class ConsentRecord:
    preferences: ConsentPreferences
    consented_at: str


def _as_bool(value: Any) -> bool:
    return value is True


AnalyticsHook = Callable[[], None]
CommitHook = Callable[[ConsentRecord], None]


def enable_analytics() -> None:
    _debug("Analytics enabled")


def disable_analytics() -> None:
    _debug("Analytics disabled")


class ConsentStateManager:
    def __init__(
        self,
        storage: DurableStorage,
        *,
        on_analytics_enabled: Iterable[AnalyticsHook] = (enable_analytics,),
        on_analytics_disabled: Iterable[AnalyticsHook] = (disable_analytics,),
        on_commit: Iterable[CommitHook] = (),
        clock: Callable[[], str] = utcnow_iso_ms,
    ):
        self.storage = storage
        self.on_analytics_enabled: List[AnalyticsHook] = list(on_analytics_enabled)
        self.on_analytics_disabled: List[AnalyticsHook] = list(on_analytics_disabled)
        self.on_commit: List[CommitHook] = list(on_commit)
        self._clock = clock

        self.preferences = ConsentPreferences()
        self.has_consented = False
        self.banner_visible = False
        self._consented_at: str | None = None

        self.initialize()

    # -----------------------------
    # Startup
    # -----------------------------

    def initialize(self) -> None:
        """Load the persisted choice, or show the banner when there is none.

        Unparseable stored preferences count as "no choice yet".
        """
        self.preferences = ConsentPreferences()
        self.has_consented = False
        self._consented_at = None

        record = self._read_record()
        if record is None:
            self.banner_visible = True
            return

        self.preferences = record.preferences
        self._consented_at = record.consented_at
        self.has_consented = True
        self.banner_visible = False

        if self.preferences.analytics:
            self._run_hooks(self.on_analytics_enabled)

    def _read_record(self) -> Optional[ConsentRecord]:
        raw = self.storage.get_item(COOKIE_PREFERENCES_KEY)
        consented_at = self.storage.get_item(COOKIE_CONSENT_TIMESTAMP_KEY)
        if not raw or not consented_at:
            return None

        try:
            saved = json.loads(raw)
        except json.JSONDecodeError:
            _debug("Stored cookie preferences are not valid JSON; asking again")
            return None
        if not isinstance(saved, dict):
            _debug("Stored cookie preferences are not an object; asking again")
            return None

        if parse_iso(consented_at) is None:
            _debug(f"Unrecognised consent timestamp {consented_at!r}; keeping preferences")

        return ConsentRecord(preferences=ConsentPreferences().merged(saved), consented_at=consented_at)

    # -----------------------------
    # Actions
    # -----------------------------

    @property
    def record(self) -> Optional[ConsentRecord]:
        if not self.has_consented or self._consented_at is None:
            return None
        return ConsentRecord(preferences=self.preferences, consented_at=self._consented_at)

    def update_preferences(self, partial: Mapping[str, Any] | None = None, **changes: Any) -> ConsentPreferences:
        """Merge a partial choice over the current one and persist it.

        `necessary=False` is accepted and silently ignored.
        """
        merged_input = dict(partial or {})
        merged_input.update(changes)
        prefs = self.preferences.merged(merged_input)
        consented_at = self._clock()

        # Two single-key writes, back to back.
        self.storage.set_item(COOKIE_PREFERENCES_KEY, prefs.to_json())
        self.storage.set_item(COOKIE_CONSENT_TIMESTAMP_KEY, consented_at)

        self.preferences = prefs
        self._consented_at = consented_at
        self.has_consented = True

        if prefs.analytics:
            self._run_hooks(self.on_analytics_enabled)
        else:
            self._run_hooks(self.on_analytics_disabled)

        record = ConsentRecord(preferences=prefs, consented_at=consented_at)
        for hook in list(self.on_commit):
            try:
                hook(record)
            except Exception as e:
                _debug(f"Commit hook {getattr(hook, '__name__', hook)!r} failed: {e!r}")
        return prefs

    def accept_all(self) -> ConsentPreferences:
        prefs = self.update_preferences({"analytics": True, "marketing": True})
        self.banner_visible = False
        return prefs

    def reject_all(self) -> ConsentPreferences:
        prefs = self.update_preferences({"analytics": False, "marketing": False})
        self.banner_visible = False
        return prefs

    def show_settings(self) -> None:
        self.banner_visible = True

    def hide_banner(self) -> None:
        self.banner_visible = False

    def _run_hooks(self, hooks: List[AnalyticsHook]) -> None:
        for hook in list(hooks):
            try:
                hook()
            except Exception as e:
                _debug(f"Analytics hook {getattr(hook, '__name__', hook)!r} failed: {e!r}")
