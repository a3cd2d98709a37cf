"""
Analytics aggregation over a user's mood, journal and chat records.

Each compute_* function reads the records it needs from a RecordStore and
folds them in memory. Averages skip records where the field is missing,
so a mood entry without sleep_hours does not drag the sleep average
toward zero. `now` is injectable so windows can be pinned in tests.
"""
import logging
from collections import Counter, defaultdict
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from database import CHATS, JOURNALS, MOODS, RecordStore
from errors import InvalidGranularity
from insights import LOOKBACK_DAYS, evaluate_insights
from periods import DEFAULT_PERIOD, resolve_period, utc_now
from schemas import (
    ChatOverview,
    ChatStatsResponse,
    ChatSummary,
    DashboardResponse,
    DashboardSummary,
    DataPoints,
    Distributions,
    InsightsResponse,
    JournalOverview,
    JournalStatsResponse,
    JournalSummary,
    MoodStatsResponse,
    MoodSummary,
    MoodTrendsResponse,
    RecentActivity,
    RecentChat,
    RecentJournal,
    RecentMood,
    TrendBucket,
)

logger = logging.getLogger(__name__)

GRANULARITY_FORMATS = {
    "day": "%Y-%m-%d",
    "week": "%Y-%U",
    "month": "%Y-%m",
}
DEFAULT_GRANULARITY = "day"

MOOD_FIELDS = {"mood": 1, "mood_score": 1, "emotions": 1, "stress_level": 1,
               "energy_level": 1, "sleep_hours": 1, "created_at": 1}
JOURNAL_FIELDS = {"word_count": 1, "is_favorite": 1, "category": 1, "created_at": 1}
CHAT_FIELDS = {"messages": 1, "context.topic": 1, "feedback.rating": 1, "created_at": 1}

RECENT_MOODS = 5
RECENT_JOURNALS = 5
RECENT_CHATS = 3

INSIGHT_MOODS = 30
INSIGHT_JOURNALS = 20
INSIGHT_CHATS = 10


def _average(values: Iterable) -> Optional[float]:
    present = [v for v in values if v is not None]
    if not present:
        return None
    return sum(present) / len(present)


def _field_average(records: List[dict], field: str) -> Optional[float]:
    return _average(r.get(field) for r in records)


def _topic(chat: dict) -> Optional[str]:
    return (chat.get("context") or {}).get("topic")


def _rating(chat: dict) -> Optional[float]:
    return (chat.get("feedback") or {}).get("rating")


def _frequency(values: Iterable) -> dict:
    return dict(Counter(v for v in values if v is not None))


# ---------- Dashboard ----------
def _mood_summary(moods: List[dict]) -> MoodSummary:
    if not moods:
        return MoodSummary()
    return MoodSummary(
        total_entries=len(moods),
        average_mood_score=_field_average(moods, "mood_score"),
        average_stress_level=_field_average(moods, "stress_level"),
        average_energy_level=_field_average(moods, "energy_level"),
        average_sleep_hours=_field_average(moods, "sleep_hours"),
    )


def _journal_summary(journals: List[dict]) -> JournalSummary:
    if not journals:
        return JournalSummary()
    return JournalSummary(
        total_entries=len(journals),
        total_words=sum(j.get("word_count") or 0 for j in journals),
        average_words_per_entry=_field_average(journals, "word_count"),
        favorite_count=sum(1 for j in journals if j.get("is_favorite")),
    )


def _chat_summary(chats: List[dict]) -> ChatSummary:
    if not chats:
        return ChatSummary()
    return ChatSummary(
        total_sessions=len(chats),
        total_messages=sum(len(c.get("messages") or []) for c in chats),
        average_rating=_average(_rating(c) for c in chats),
    )


def _recent_activity(store: RecordStore, user_id: str, since: datetime) -> RecentActivity:
    moods = store.fetch_window(MOODS, user_id, since, limit=RECENT_MOODS,
                               projection={"mood": 1, "mood_score": 1, "created_at": 1})
    journals = store.fetch_window(JOURNALS, user_id, since, limit=RECENT_JOURNALS,
                                  projection={"title": 1, "category": 1, "created_at": 1})
    chats = store.fetch_window(CHATS, user_id, since, sort_field="updated_at", limit=RECENT_CHATS,
                               projection={"session_id": 1, "context.topic": 1, "updated_at": 1})
    return RecentActivity(
        moods=[
            RecentMood(id=str(m["_id"]), mood=m.get("mood"), mood_score=m.get("mood_score"),
                       created_at=m["created_at"])
            for m in moods
        ],
        journals=[
            RecentJournal(id=str(j["_id"]), title=j.get("title"), category=j.get("category"),
                          created_at=j["created_at"])
            for j in journals
        ],
        chats=[
            RecentChat(id=str(c["_id"]), session_id=c["session_id"], topic=_topic(c),
                       updated_at=c.get("updated_at"))
            for c in chats
        ],
    )


def compute_dashboard_summary(store: RecordStore, user_id: str, period: str = DEFAULT_PERIOD,
                              now: Optional[datetime] = None) -> DashboardResponse:
    """Summaries, distributions and recent activity for one user over a named period.

    The four reads are independent and run side by side; if any of them
    fails the whole summary fails.
    """
    now = now or utc_now()
    since = resolve_period(period, now)

    with ThreadPoolExecutor(max_workers=4) as executor:
        mood_job = executor.submit(store.fetch_window, MOODS, user_id, since, projection=MOOD_FIELDS)
        journal_job = executor.submit(store.fetch_window, JOURNALS, user_id, since, projection=JOURNAL_FIELDS)
        chat_job = executor.submit(store.fetch_window, CHATS, user_id, since, projection=CHAT_FIELDS)
        recent_job = executor.submit(_recent_activity, store, user_id, since)
        moods = mood_job.result()
        journals = journal_job.result()
        chats = chat_job.result()
        recent = recent_job.result()

    logger.debug("Dashboard for %s (%s): %d moods, %d journals, %d chats",
                 user_id, period, len(moods), len(journals), len(chats))

    return DashboardResponse(
        period=period,
        summary=DashboardSummary(
            mood=_mood_summary(moods),
            journal=_journal_summary(journals),
            chat=_chat_summary(chats),
        ),
        distributions=Distributions(
            mood=_frequency(m.get("mood") for m in moods),
            emotions=_frequency(e for m in moods for e in (m.get("emotions") or [])),
            journal_categories=_frequency(j.get("category") for j in journals),
            chat_topics=_frequency(_topic(c) for c in chats),
        ),
        recent_activity=recent,
    )


# ---------- Trends ----------
def compute_mood_trends(store: RecordStore, user_id: str, period: str = DEFAULT_PERIOD,
                        granularity: str = DEFAULT_GRANULARITY,
                        now: Optional[datetime] = None) -> MoodTrendsResponse:
    """Per-bucket mood averages, buckets keyed by the formatted creation date."""
    date_format = GRANULARITY_FORMATS.get(granularity)
    if date_format is None:
        raise InvalidGranularity(granularity)
    now = now or utc_now()
    since = resolve_period(period, now)

    moods = store.fetch_window(MOODS, user_id, since, projection=MOOD_FIELDS)
    buckets = defaultdict(list)
    for mood in moods:
        buckets[mood["created_at"].strftime(date_format)].append(mood)

    trends = [
        TrendBucket(
            bucket=key,
            average_mood_score=_field_average(entries, "mood_score"),
            average_stress_level=_field_average(entries, "stress_level"),
            average_energy_level=_field_average(entries, "energy_level"),
            average_sleep_hours=_field_average(entries, "sleep_hours"),
            entry_count=len(entries),
        )
        for key, entries in sorted(buckets.items())
    ]
    return MoodTrendsResponse(period=period, granularity=granularity, trends=trends)


# ---------- Insights ----------
def compute_wellness_insights(store: RecordStore, user_id: str,
                              now: Optional[datetime] = None) -> InsightsResponse:
    now = now or utc_now()
    since = now - timedelta(days=LOOKBACK_DAYS)

    with ThreadPoolExecutor(max_workers=3) as executor:
        mood_job = executor.submit(store.fetch_window, MOODS, user_id, since, limit=INSIGHT_MOODS)
        journal_job = executor.submit(store.fetch_window, JOURNALS, user_id, since, limit=INSIGHT_JOURNALS)
        chat_job = executor.submit(store.fetch_window, CHATS, user_id, since,
                                   sort_field="updated_at", limit=INSIGHT_CHATS)
        moods = mood_job.result()
        journals = journal_job.result()
        chats = chat_job.result()

    insights, recommendations = evaluate_insights(moods, journals, chats)
    return InsightsResponse(
        insights=insights,
        recommendations=recommendations,
        data_points=DataPoints(
            mood_entries=len(moods),
            journal_entries=len(journals),
            chat_sessions=len(chats),
        ),
    )


# ---------- Record statistics ----------
def compute_mood_stats(store: RecordStore, user_id: str, period: str = DEFAULT_PERIOD,
                       now: Optional[datetime] = None) -> MoodStatsResponse:
    now = now or utc_now()
    since = resolve_period(period, now)
    moods = store.fetch_window(MOODS, user_id, since, projection=MOOD_FIELDS)
    return MoodStatsResponse(
        period=period,
        stats=_mood_summary(moods),
        mood_distribution=_frequency(m.get("mood") for m in moods),
    )


def compute_journal_stats(store: RecordStore, user_id: str) -> JournalStatsResponse:
    """Lifetime totals over every journal the user has not archived."""
    journals = store.fetch_window(JOURNALS, user_id, None,
                                  projection=dict(JOURNAL_FIELDS, reading_time=1))
    summary = _journal_summary(journals)
    return JournalStatsResponse(
        stats=JournalOverview(
            **summary.model_dump(),
            total_reading_time=sum(j.get("reading_time") or 0 for j in journals),
        ),
        category_distribution=_frequency(j.get("category") for j in journals),
    )


def compute_chat_stats(store: RecordStore, user_id: str) -> ChatStatsResponse:
    chats = store.fetch_window(CHATS, user_id, None, sort_field="updated_at",
                               projection=dict(CHAT_FIELDS, is_active=1))
    summary = _chat_summary(chats)
    return ChatStatsResponse(
        stats=ChatOverview(
            **summary.model_dump(),
            active_sessions=sum(1 for c in chats if c.get("is_active")),
        ),
        topic_distribution=_frequency(_topic(c) for c in chats),
    )
