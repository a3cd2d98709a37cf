from datetime import datetime, timedelta, timezone

import pytest

from analytics import (
    compute_chat_stats,
    compute_dashboard_summary,
    compute_journal_stats,
    compute_mood_stats,
    compute_mood_trends,
    compute_wellness_insights,
)
from errors import InvalidGranularity, InvalidPeriod, QueryFailure

from conftest import NOW, OTHER_USER, USER


def days_ago(days, hours=0):
    return NOW - timedelta(days=days, hours=hours)


# ---------- Dashboard ----------
def test_empty_dashboard_is_all_zero(store):
    result = compute_dashboard_summary(store, USER, now=NOW)
    body = result.model_dump(by_alias=True)

    assert body["period"] == "month"
    assert body["summary"]["mood"] == {
        "totalEntries": 0,
        "averageMoodScore": 0,
        "averageStressLevel": 0,
        "averageEnergyLevel": 0,
        "averageSleepHours": 0,
    }
    assert body["summary"]["journal"] == {
        "totalEntries": 0, "totalWords": 0, "averageWordsPerEntry": 0, "favoriteCount": 0,
    }
    assert body["summary"]["chat"] == {"totalSessions": 0, "totalMessages": 0, "averageRating": 0}
    assert body["distributions"] == {"mood": {}, "emotions": {}, "journalCategories": {}, "chatTopics": {}}
    assert body["recentActivity"] == {"moods": [], "journals": [], "chats": []}


def test_mood_average_only_counts_records_in_window(store, add_mood):
    add_mood(created_at=days_ago(1), mood_score=5)
    add_mood(created_at=days_ago(3), mood_score=4)
    add_mood(created_at=days_ago(6), mood_score=2)
    add_mood(created_at=days_ago(10), mood_score=1)
    add_mood(created_at=days_ago(60), mood_score=1)

    week = compute_dashboard_summary(store, USER, "week", now=NOW).summary.mood
    assert week.total_entries == 3
    assert week.average_mood_score == pytest.approx(11 / 3)

    month = compute_dashboard_summary(store, USER, "month", now=NOW).summary.mood
    assert month.total_entries == 4
    assert month.average_mood_score == pytest.approx(3.0)


def test_mood_means_ignore_missing_fields(store, add_mood):
    add_mood(created_at=days_ago(1), mood_score=4, stress_level=8, sleep_hours=7.5)
    add_mood(created_at=days_ago(2), mood_score=2, stress_level=4)
    add_mood(created_at=days_ago(3), mood_score=3)

    mood = compute_dashboard_summary(store, USER, now=NOW).summary.mood
    assert mood.average_mood_score == pytest.approx(3.0)
    assert mood.average_stress_level == pytest.approx(6.0)
    assert mood.average_sleep_hours == pytest.approx(7.5)
    assert mood.average_energy_level is None


def test_mood_and_emotion_distributions(store, add_mood):
    add_mood(created_at=days_ago(1), mood="happy", mood_score=4, emotions=["calm", "grateful"])
    add_mood(created_at=days_ago(2), mood="happy", mood_score=4, emotions=["calm"])
    add_mood(created_at=days_ago(3), mood="sad", mood_score=2, emotions=["tired", "anxious"])

    distributions = compute_dashboard_summary(store, USER, now=NOW).distributions
    assert distributions.mood == {"happy": 2, "sad": 1}
    assert distributions.emotions == {"calm": 2, "grateful": 1, "tired": 1, "anxious": 1}


def test_archived_journals_never_counted(store, add_journal):
    add_journal(created_at=days_ago(1), title="Kept", content="one two three", category="gratitude",
                is_favorite=True)
    add_journal(created_at=days_ago(2), title="Also kept", content="four five", category="daily")
    add_journal(created_at=days_ago(3), title="Hidden", content="six seven eight nine", category="dreams",
                is_favorite=True, is_archived=True)

    for period in ("week", "month", "quarter", "year"):
        result = compute_dashboard_summary(store, USER, period, now=NOW)
        journal = result.summary.journal
        assert journal.total_entries == 2
        assert journal.total_words == 5
        assert journal.average_words_per_entry == pytest.approx(2.5)
        assert journal.favorite_count == 1
        assert result.distributions.journal_categories == {"gratitude": 1, "daily": 1}
        assert [j.title for j in result.recent_activity.journals] == ["Kept", "Also kept"]


def test_chat_summary_and_topics(store, add_chat):
    add_chat(created_at=days_ago(1), topic="anxiety", message_count=4, rating=5)
    add_chat(created_at=days_ago(2), topic="anxiety", message_count=2)
    add_chat(created_at=days_ago(3), topic="sleep", message_count=3, rating=2)

    result = compute_dashboard_summary(store, USER, now=NOW)
    chat = result.summary.chat
    assert chat.total_sessions == 3
    assert chat.total_messages == 9
    assert chat.average_rating == pytest.approx(3.5)
    assert result.distributions.chat_topics == {"anxiety": 2, "sleep": 1}


def test_unrated_sessions_leave_rating_empty(store, add_chat):
    add_chat(created_at=days_ago(1), message_count=1)
    assert compute_dashboard_summary(store, USER, now=NOW).summary.chat.average_rating is None


def test_recent_activity_is_newest_first_and_limited(store, add_mood, add_journal, add_chat):
    for day in range(1, 8):
        add_mood(created_at=days_ago(day), mood_score=day % 5 + 1)
        add_journal(created_at=days_ago(day), title=f"Day {day}")
    add_chat(created_at=days_ago(5), updated_at=days_ago(0, hours=1), session_id="s-late")
    add_chat(created_at=days_ago(2), updated_at=days_ago(2), session_id="s-mid")
    add_chat(created_at=days_ago(1), updated_at=days_ago(1), session_id="s-new")
    add_chat(created_at=days_ago(6), updated_at=days_ago(6), session_id="s-old")

    recent = compute_dashboard_summary(store, USER, now=NOW).recent_activity
    assert [m.created_at for m in recent.moods] == [days_ago(d).replace(tzinfo=timezone.utc) for d in range(1, 6)]
    assert [j.title for j in recent.journals] == ["Day 1", "Day 2", "Day 3", "Day 4", "Day 5"]
    assert [c.session_id for c in recent.chats] == ["s-late", "s-new", "s-mid"]
    assert recent.chats[0].topic == "general"


def test_recent_activity_timestamps_serialize_as_utc(store, add_mood, add_journal, add_chat):
    add_mood(created_at=days_ago(1))
    add_journal(created_at=days_ago(1))
    add_chat(created_at=days_ago(1))

    recent = compute_dashboard_summary(store, USER, now=NOW).model_dump(mode="json", by_alias=True)["recentActivity"]
    assert recent["moods"][0]["createdAt"] == "2024-06-14T12:00:00Z"
    assert recent["journals"][0]["createdAt"] == "2024-06-14T12:00:00Z"
    assert recent["chats"][0]["updatedAt"] == "2024-06-14T12:00:00Z"


def test_other_users_records_are_invisible(store, add_mood, add_journal):
    add_mood(created_at=days_ago(1), mood_score=5, user_id=OTHER_USER)
    add_journal(created_at=days_ago(1), user_id=OTHER_USER)
    result = compute_dashboard_summary(store, USER, now=NOW)
    assert result.summary.mood.total_entries == 0
    assert result.summary.journal.total_entries == 0


def test_dashboard_store_failure_aborts(broken_store):
    with pytest.raises(QueryFailure):
        compute_dashboard_summary(broken_store, USER, now=NOW)


def test_dashboard_rejects_unknown_period(store):
    with pytest.raises(InvalidPeriod):
        compute_dashboard_summary(store, USER, "decade", now=NOW)


# ---------- Trends ----------
def test_daily_trend_buckets(store, add_mood):
    add_mood(created_at=datetime(2024, 6, 14, 9), mood_score=4, stress_level=3)
    add_mood(created_at=datetime(2024, 6, 14, 21), mood_score=2, stress_level=7, sleep_hours=6)
    add_mood(created_at=datetime(2024, 6, 10, 8), mood_score=5)
    add_mood(created_at=datetime(2024, 4, 1, 8), mood_score=1)

    result = compute_mood_trends(store, USER, "month", "day", now=NOW)
    assert result.granularity == "day"
    assert [b.bucket for b in result.trends] == ["2024-06-10", "2024-06-14"]

    june_14 = result.trends[1]
    assert june_14.entry_count == 2
    assert june_14.average_mood_score == pytest.approx(3.0)
    assert june_14.average_stress_level == pytest.approx(5.0)
    assert june_14.average_sleep_hours == pytest.approx(6.0)
    assert june_14.average_energy_level is None


def test_trend_buckets_unique_sorted_and_complete(store, add_mood):
    for hours in range(0, 24 * 20, 7):
        add_mood(created_at=NOW - timedelta(hours=hours), mood_score=hours % 5 + 1)

    result = compute_mood_trends(store, USER, "month", "day", now=NOW)
    keys = [b.bucket for b in result.trends]
    assert keys == sorted(set(keys))
    assert sum(b.entry_count for b in result.trends) == len(range(0, 24 * 20, 7))


def test_weekly_buckets_start_on_sunday(store, add_mood):
    add_mood(created_at=datetime(2024, 6, 8, 12), mood_score=3)  # Saturday
    add_mood(created_at=datetime(2024, 6, 9, 12), mood_score=5)  # Sunday

    result = compute_mood_trends(store, USER, "month", "week", now=NOW)
    assert [(b.bucket, b.entry_count) for b in result.trends] == [("2024-22", 1), ("2024-23", 1)]


def test_one_entry_per_month_over_a_year(store, add_mood):
    for offset in range(12):
        month = 7 + offset
        year = 2023 + (month - 1) // 12
        month = (month - 1) % 12 + 1
        add_mood(created_at=datetime(year, month, 1, 10), mood_score=3)

    result = compute_mood_trends(store, USER, "year", "month", now=NOW)
    assert len(result.trends) == 12
    assert all(b.entry_count == 1 for b in result.trends)
    assert result.trends[0].bucket == "2023-07"
    assert result.trends[-1].bucket == "2024-06"


def test_trends_reject_unknown_granularity(store):
    with pytest.raises(InvalidGranularity):
        compute_mood_trends(store, USER, "month", "hour", now=NOW)


# ---------- Record statistics ----------
def test_mood_stats_over_period(store, add_mood):
    add_mood(created_at=days_ago(1), mood="happy", mood_score=4, stress_level=2)
    add_mood(created_at=days_ago(4), mood="happy", mood_score=5)
    add_mood(created_at=days_ago(20), mood="sad", mood_score=2, stress_level=6)

    week = compute_mood_stats(store, USER, "week", now=NOW)
    assert week.stats.total_entries == 2
    assert week.stats.average_mood_score == pytest.approx(4.5)
    assert week.mood_distribution == {"happy": 2}

    month = compute_mood_stats(store, USER, now=NOW).model_dump(by_alias=True)
    assert month["period"] == "month"
    assert month["stats"]["totalEntries"] == 3
    assert month["stats"]["averageStressLevel"] == pytest.approx(4.0)
    assert month["moodDistribution"] == {"happy": 2, "sad": 1}


def test_empty_mood_stats_are_zero(store):
    stats = compute_mood_stats(store, USER, now=NOW).stats
    assert stats.total_entries == 0
    assert stats.average_mood_score == 0


def test_journal_stats_cover_all_unarchived_entries(store, add_journal):
    add_journal(created_at=days_ago(1), content="one two", category="gratitude", is_favorite=True, reading_time=1)
    add_journal(created_at=days_ago(400), content="three four five six", category="daily", reading_time=2)
    add_journal(created_at=days_ago(2), content="hidden words here", category="dreams", is_archived=True)

    result = compute_journal_stats(store, USER).model_dump(by_alias=True)
    assert result["stats"] == {
        "totalEntries": 2,
        "totalWords": 6,
        "averageWordsPerEntry": 3.0,
        "favoriteCount": 1,
        "totalReadingTime": 3,
    }
    assert result["categoryDistribution"] == {"gratitude": 1, "daily": 1}


def test_chat_stats_count_active_sessions(store, add_chat):
    add_chat(created_at=days_ago(1), session_id="s1", topic="stress", message_count=2, rating=4)
    add_chat(created_at=days_ago(90), session_id="s2", topic="stress", message_count=3, is_active=False)
    add_chat(created_at=days_ago(3), session_id="s3", topic="sleep", rating=2, user_id=OTHER_USER)

    result = compute_chat_stats(store, USER)
    assert result.stats.total_sessions == 2
    assert result.stats.active_sessions == 1
    assert result.stats.total_messages == 5
    assert result.stats.average_rating == pytest.approx(4.0)
    assert result.topic_distribution == {"stress": 2}


def test_stats_store_failure(broken_store):
    with pytest.raises(QueryFailure):
        compute_chat_stats(broken_store, USER)


# ---------- Insights ----------
def test_insights_use_thirty_day_lookback(store, add_mood, add_journal, add_chat):
    add_mood(created_at=days_ago(2), mood_score=4, sleep_hours=4)
    add_mood(created_at=days_ago(5), mood_score=4, sleep_hours=5)
    add_mood(created_at=days_ago(45), mood_score=1, sleep_hours=9)
    add_journal(created_at=days_ago(40))
    add_chat(created_at=days_ago(31))

    result = compute_wellness_insights(store, USER, now=NOW)
    assert result.data_points.mood_entries == 2
    assert result.data_points.journal_entries == 0
    assert result.data_points.chat_sessions == 0
    assert [i.title for i in result.insights] == ["Insufficient Sleep"]
    assert "4.5" in result.insights[0].description
    assert [r.title for r in result.recommendations] == ["Improve Sleep Hygiene", "Stay Consistent"]


def test_insights_cap_fetched_records(store, add_mood, add_journal, add_chat):
    for hour in range(40):
        add_mood(created_at=days_ago(1, hours=hour), mood_score=3)
    for hour in range(25):
        add_journal(created_at=days_ago(1, hours=hour), is_archived=(hour == 0))
    for hour in range(12):
        add_chat(created_at=days_ago(1, hours=hour), session_id=f"s{hour}")

    result = compute_wellness_insights(store, USER, now=NOW)
    assert result.model_dump(by_alias=True)["dataPoints"] == {
        "moodEntries": 30, "journalEntries": 20, "chatSessions": 10,
    }
    assert [i.title for i in result.insights] == ["Consistent Journaling", "Active Support Seeking"]
    assert result.recommendations[-1].title == "Stay Consistent"


def test_insights_store_failure(broken_store):
    with pytest.raises(QueryFailure):
        compute_wellness_insights(broken_store, USER, now=NOW)
