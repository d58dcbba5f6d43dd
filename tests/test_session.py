from datetime import datetime, timedelta, timezone

import pytest

from tutordesk.schemas import User
from tutordesk.session import Preferences, Session
from tutordesk.storage import KeyValueStorage


def make_user(id="u1", role="student", **extra):
    return User(id=id, name="Ece", email=f"{id}@example.com", role=role, **extra)


class TestSession:
    def test_sign_in_survives_restart(self, tmp_path):
        path = tmp_path / "session.json"
        session = Session(KeyValueStorage(path))
        session.sign_in(make_user(assigned_coach_id="coach"), "token-1")

        restored = Session(KeyValueStorage(path))
        assert restored.is_authenticated
        assert restored.token == "token-1"
        assert restored.current_user.assigned_coach_id == "coach"

    def test_sign_out_clears_storage(self, tmp_path):
        path = tmp_path / "session.json"
        session = Session(KeyValueStorage(path))
        session.sign_in(make_user(), "token-1")
        revision = session.revision
        session.sign_out()

        assert session.current_user is None
        assert session.revision > revision
        assert not Session(KeyValueStorage(path)).is_authenticated

    def test_unreadable_stored_user_is_dropped(self):
        storage = KeyValueStorage()
        storage.set("currentUser", {"id": "u1"})
        assert Session(storage).current_user is None
        assert "currentUser" not in storage

    def test_rematch_picks_fresh_record(self):
        session = Session()
        session.sign_in(make_user(), "token")
        fresh = make_user(xp=120)
        assert session.rematch([make_user("other"), fresh]) == fresh
        assert session.current_user.xp == 120

    def test_rematch_stale_user_signs_out(self):
        session = Session()
        session.sign_in(make_user(), "token")
        assert session.rematch([make_user("other")]) is None
        assert session.current_user is None
        assert session.token is None

    def test_staff(self):
        session = Session()
        session.sign_in(make_user(role="coach"), "token")
        assert session.is_staff
        session.set_current_user(make_user(role="parent"))
        assert not session.is_staff


class TestPreferences:
    def test_theme(self):
        preferences = Preferences()
        assert preferences.theme == "light"
        preferences.theme = "dark"
        assert preferences.theme == "dark"
        with pytest.raises(ValueError):
            preferences.theme = "sepia"

    def test_tour(self, tmp_path):
        preferences = Preferences(KeyValueStorage(tmp_path / "local.json"))
        assert not preferences.tour_completed
        preferences.complete_tour()
        assert Preferences(KeyValueStorage(tmp_path / "local.json")).tour_completed

    def test_weekly_report_once_per_week(self):
        preferences = Preferences()
        shown = datetime(2026, 1, 1, 10, 0, tzinfo=timezone.utc)

        assert preferences.should_show_weekly_report("u1", now=shown)
        assert not preferences.should_show_weekly_report("u1", now=shown + timedelta(hours=3))
        # measured from midnight seven days back, so day 7 is still inside the window
        assert not preferences.should_show_weekly_report("u1", now=datetime(2026, 1, 8, 9, 0, tzinfo=timezone.utc))
        assert preferences.should_show_weekly_report("u1", now=datetime(2026, 1, 9, 0, 30, tzinfo=timezone.utc))

    def test_weekly_report_accepts_naive_now(self):
        preferences = Preferences()
        assert preferences.should_show_weekly_report("u1", now=datetime(2026, 1, 1, 10, 0, tzinfo=timezone.utc))
        assert not preferences.should_show_weekly_report("u1", now=datetime(2026, 1, 2, 10, 0))
        assert preferences.should_show_weekly_report("u1", now=datetime(2026, 1, 20, 10, 0))

    def test_weekly_report_is_per_user(self):
        preferences = Preferences()
        now = datetime(2026, 1, 1, 10, 0, tzinfo=timezone.utc)
        assert preferences.should_show_weekly_report("u1", now=now)
        assert preferences.should_show_weekly_report("u2", now=now)
