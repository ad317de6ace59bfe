"""
Cookie consent state: persistence, reload and post-commit hooks
"""
import json

import pytest

from reiseveteran.client.consent import ConsentPreferences, ConsentStateManager
from reiseveteran.client.storage import (
    COOKIE_CONSENT_TIMESTAMP_KEY,
    COOKIE_PREFERENCES_KEY,
    JsonFileStorage,
    MemoryStorage,
)


def _prefs(manager):
    p = manager.preferences
    return {"necessary": p.necessary, "analytics": p.analytics, "marketing": p.marketing}


def test_first_visit_shows_banner_with_defaults(storage):
    consent = ConsentStateManager(storage)

    assert consent.banner_visible is True
    assert consent.has_consented is False
    assert _prefs(consent) == {"necessary": True, "analytics": False, "marketing": False}
    assert consent.record is None


@pytest.mark.parametrize(
    "partial",
    [
        {"necessary": False},
        {"necessary": False, "analytics": True},
        {"necessary": False, "marketing": True, "analytics": False},
        {"analytics": True},
        {},
    ],
)
def test_necessary_is_always_true(storage, partial):
    consent = ConsentStateManager(storage)
    consent.update_preferences(partial)

    assert consent.preferences.necessary is True
    assert json.loads(storage.get_item(COOKIE_PREFERENCES_KEY))["necessary"] is True


def test_necessary_cannot_be_constructed_false():
    assert ConsentPreferences(necessary=False).necessary is True


def test_accept_all_survives_reload(storage):
    ConsentStateManager(storage).accept_all()

    reloaded = ConsentStateManager(storage)
    assert reloaded.has_consented is True
    assert reloaded.banner_visible is False
    assert _prefs(reloaded) == {"necessary": True, "analytics": True, "marketing": True}


def test_reject_all_survives_reload(storage):
    consent = ConsentStateManager(storage)
    consent.accept_all()
    consent.reject_all()

    reloaded = ConsentStateManager(storage)
    assert _prefs(reloaded) == {"necessary": True, "analytics": False, "marketing": False}
    assert reloaded.has_consented is True


def test_partial_update_merges_and_stamps(storage):
    consent = ConsentStateManager(storage, clock=lambda: "2025-05-01T10:00:00.000Z")
    consent.update_preferences(marketing=True)
    consent.update_preferences({"analytics": True})

    assert _prefs(consent) == {"necessary": True, "analytics": True, "marketing": True}
    assert storage.get_item(COOKIE_CONSENT_TIMESTAMP_KEY) == "2025-05-01T10:00:00.000Z"
    assert consent.record.consented_at == "2025-05-01T10:00:00.000Z"
    # Partial updates record consent but leave the banner alone.
    assert consent.has_consented is True
    assert consent.banner_visible is True


def test_unknown_keys_are_ignored(storage):
    consent = ConsentStateManager(storage)
    consent.update_preferences({"tracking": True, "analytics": True})

    assert json.loads(storage.get_item(COOKIE_PREFERENCES_KEY)) == {
        "necessary": True,
        "analytics": True,
        "marketing": False,
    }


def test_show_settings_and_hide_banner_do_not_touch_preferences(storage):
    consent = ConsentStateManager(storage)
    consent.accept_all()

    consent.show_settings()
    assert consent.banner_visible is True
    consent.hide_banner()
    assert consent.banner_visible is False
    assert _prefs(consent) == {"necessary": True, "analytics": True, "marketing": True}


@pytest.mark.parametrize("raw", ["{not json", "[1, 2]", '"analytics"', "null"])
def test_malformed_stored_preferences_fall_back_to_banner(raw):
    storage = MemoryStorage(
        {
            COOKIE_PREFERENCES_KEY: raw,
            COOKIE_CONSENT_TIMESTAMP_KEY: "2025-01-01T00:00:00.000Z",
        }
    )
    consent = ConsentStateManager(storage)

    assert consent.banner_visible is True
    assert consent.has_consented is False
    assert _prefs(consent) == {"necessary": True, "analytics": False, "marketing": False}


def test_preferences_without_timestamp_count_as_no_consent():
    storage = MemoryStorage({COOKIE_PREFERENCES_KEY: '{"necessary":true,"analytics":true,"marketing":true}'})
    consent = ConsentStateManager(storage)

    assert consent.has_consented is False
    assert consent.banner_visible is True


def test_stored_necessary_false_is_overridden_on_load():
    storage = MemoryStorage(
        {
            COOKIE_PREFERENCES_KEY: '{"necessary":false,"analytics":"yes","marketing":true}',
            COOKIE_CONSENT_TIMESTAMP_KEY: "2025-01-01T00:00:00.000Z",
        }
    )
    consent = ConsentStateManager(storage)

    # Only real booleans count as consent.
    assert _prefs(consent) == {"necessary": True, "analytics": False, "marketing": True}


def test_analytics_hooks_follow_the_choice(storage):
    calls = []
    consent = ConsentStateManager(
        storage,
        on_analytics_enabled=[lambda: calls.append("on")],
        on_analytics_disabled=[lambda: calls.append("off")],
    )
    assert calls == []

    consent.accept_all()
    consent.reject_all()
    consent.update_preferences(analytics=True)
    assert calls == ["on", "off", "on"]


def test_analytics_enabled_on_startup_when_previously_granted(storage):
    ConsentStateManager(storage).accept_all()

    calls = []
    ConsentStateManager(storage, on_analytics_enabled=[lambda: calls.append("on")])
    assert calls == ["on"]


def test_failing_hook_does_not_undo_the_write(storage):
    seen = []

    def broken():
        raise RuntimeError("analytics script failed to load")

    consent = ConsentStateManager(
        storage,
        on_analytics_enabled=[broken, lambda: seen.append("second hook ran")],
        on_commit=[lambda record: seen.append(record.preferences.analytics)],
    )
    consent.accept_all()

    assert seen == ["second hook ran", True]
    assert consent.banner_visible is False
    assert json.loads(storage.get_item(COOKIE_PREFERENCES_KEY))["analytics"] is True


def test_hooks_run_after_the_durable_write(storage):
    observed = []
    consent = ConsentStateManager(
        storage,
        on_analytics_enabled=[lambda: observed.append(storage.get_item(COOKIE_PREFERENCES_KEY))],
    )
    consent.update_preferences(analytics=True)

    assert json.loads(observed[0])["analytics"] is True


def test_failed_write_leaves_state_unchanged():
    class ReadOnlyStorage(MemoryStorage):
        def set_item(self, key, value):
            raise OSError("disk full")

    consent = ConsentStateManager(ReadOnlyStorage())
    with pytest.raises(OSError):
        consent.accept_all()

    assert consent.has_consented is False
    assert consent.preferences.analytics is False


def test_file_storage_reload(tmp_path):
    path = tmp_path / "client.json"
    ConsentStateManager(JsonFileStorage(path)).accept_all()

    reloaded = ConsentStateManager(JsonFileStorage(path))
    assert reloaded.has_consented is True
    assert reloaded.banner_visible is False
    assert _prefs(reloaded) == {"necessary": True, "analytics": True, "marketing": True}


def test_corrupt_storage_file_reads_as_empty(tmp_path):
    path = tmp_path / "client.json"
    path.write_text("{{{", encoding="utf-8")

    consent = ConsentStateManager(JsonFileStorage(path))
    assert consent.banner_visible is True

    consent.reject_all()
    assert json.loads(path.read_text(encoding="utf-8"))[COOKIE_CONSENT_TIMESTAMP_KEY]
