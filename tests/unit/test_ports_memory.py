"""
Unit tests for the in-memory repository adapters and event bus.
"""

from datetime import datetime, timezone

import pytest

from nback_engine.analytics.events import (
    EventCategory,
    EventType,
    help_viewed_event,
    level_selected_event,
    session_abandoned_event,
)
from nback_engine.ports.memory import (
    InMemoryAnalyticsRepository,
    InMemoryEventBus,
    InMemoryProgressRepository,
    InMemorySessionRepository,
)
from nback_engine.ports.repositories import UserProgress
from nback_engine.training.domain_events import (
    LEVEL_UNLOCKED,
    SESSION_STARTED,
    LevelUnlocked,
    SessionStarted,
)


class TestInMemorySessionRepository:
    @pytest.fixture
    def repo(self, make_session_result):
        return InMemorySessionRepository(
            [
                make_session_result("b", "position-1", datetime(2024, 3, 2)),
                make_session_result("a", "position-2", datetime(2024, 3, 1)),
                make_session_result("c", "position-1", datetime(2024, 3, 3)),
            ]
        )

    def test_find_by_id(self, repo):
        assert repo.find_by_id("a").level_id == "position-2"
        assert repo.find_by_id("missing") is None

    def test_find_recent_is_newest_first(self, repo):
        assert [s.session_id for s in repo.find_recent(2)] == ["c", "b"]

    def test_find_all_is_oldest_first(self, repo):
        assert [s.session_id for s in repo.find_all()] == ["a", "b", "c"]

    def test_find_by_level(self, repo):
        assert [s.session_id for s in repo.find_by_level("position-1")] == ["b", "c"]

    def test_find_by_date_range_is_inclusive(self, repo):
        found = repo.find_by_date_range(datetime(2024, 3, 1), datetime(2024, 3, 2))
        assert [s.session_id for s in found] == ["a", "b"]

    def test_save_replaces_same_id(self, repo, make_session_result):
        repo.save(make_session_result("a", "position-2", datetime(2024, 3, 1), 99.0))
        assert repo.count() == 3
        assert repo.find_by_id("a").combined_accuracy == 99.0

    def test_clear(self, repo):
        repo.clear()
        assert repo.count() == 0


class TestInMemoryProgressRepository:
    def test_defaults(self):
        progress = InMemoryProgressRepository().get()
        assert progress.unlocked_levels == ["position-1", "audio-1"]
        assert progress.current_level == "position-1"

    def test_get_returns_a_copy(self):
        repo = InMemoryProgressRepository()
        progress = repo.get()
        progress.unlocked_levels.append("dual-3")
        assert not repo.is_level_unlocked("dual-3")

    def test_unlock_level_is_idempotent(self):
        repo = InMemoryProgressRepository()
        repo.unlock_level("position-2")
        repo.unlock_level("position-2")
        assert repo.get().unlocked_levels.count("position-2") == 1
        assert repo.is_level_unlocked("position-2")

    def test_update_field(self):
        repo = InMemoryProgressRepository()
        repo.update_field("current_level", "audio-1")
        assert repo.get().current_level == "audio-1"

    def test_update_unknown_field_raises(self):
        with pytest.raises(KeyError):
            InMemoryProgressRepository().update_field("favourite_colour", "blue")

    def test_zoned_last_session_date_stored_as_local_time(self):
        expected = datetime(2024, 3, 5, 9, 0, tzinfo=timezone.utc).astimezone().replace(tzinfo=None)
        loaded = UserProgress.model_validate({"last_session_date": "2024-03-05T09:00:00Z"})
        assert loaded.last_session_date == expected

        repo = InMemoryProgressRepository()
        repo.update_field("last_session_date", datetime(2024, 3, 5, 9, 0, tzinfo=timezone.utc))
        assert repo.get().last_session_date == expected

    def test_update_streak(self):
        repo = InMemoryProgressRepository(
            UserProgress(current_streak=2, last_session_date=datetime(2024, 3, 5, 20, 0))
        )
        assert repo.update_streak(datetime(2024, 3, 6, 8, 0)) == 3
        assert repo.get().longest_streak == 3

    def test_reset(self):
        repo = InMemoryProgressRepository(UserProgress(total_sessions=12))
        repo.reset()
        assert repo.get().total_sessions == 0


class TestInMemoryAnalyticsRepository:
    @pytest.fixture
    def repo(self):
        return InMemoryAnalyticsRepository(
            [
                help_viewed_event("h1", "home", 5000.0, timestamp=datetime(2024, 3, 1)),
                session_abandoned_event("s-1", 3, 20, timestamp=datetime(2024, 3, 2)),
                level_selected_event("position-2", timestamp=datetime(2024, 3, 3)),
            ]
        )

    def test_queries(self, repo):
        assert len(repo.get_events_by_category(EventCategory.HELP)) == 1
        assert len(repo.get_events_by_session("s-1")) == 1
        assert len(repo.get_events_by_type(EventType.LEVEL_SELECTED)) == 1
        assert repo.get_recent_events(1)[0].type == "LEVEL_SELECTED"
        assert len(repo.get_events_since(datetime(2024, 3, 2))) == 2
        assert repo.get_event_count() == 3

    def test_track_events(self, repo):
        repo.track_events([help_viewed_event("h2", "home", 100.0)])
        assert len(repo.get_all_events()) == 4

    def test_clear_older_than_returns_removed_count(self, repo):
        assert repo.clear_older_than(datetime(2024, 3, 2)) == 1
        assert repo.get_event_count() == 2

    def test_clear(self, repo):
        repo.clear()
        assert repo.get_all_events() == []


class TestInMemoryEventBus:
    def test_delivers_to_matching_type_only(self):
        bus = InMemoryEventBus()
        started, unlocked = [], []
        bus.subscribe(SESSION_STARTED, started.append)
        bus.subscribe(LEVEL_UNLOCKED, unlocked.append)

        bus.publish(SessionStarted("s-1", level_id="position-1"))

        assert len(started) == 1
        assert started[0].level_id == "position-1"
        assert unlocked == []

    def test_unsubscribe(self):
        bus = InMemoryEventBus()
        received = []
        unsubscribe = bus.subscribe(LEVEL_UNLOCKED, received.append)

        bus.publish(LevelUnlocked("position-2", level_id="position-2"))
        unsubscribe()
        unsubscribe()
        bus.publish(LevelUnlocked("audio-2", level_id="audio-2"))

        assert [e.level_id for e in received] == ["position-2"]

    def test_publish_without_subscribers(self):
        InMemoryEventBus().publish(SessionStarted("s-1", level_id="position-1"))
