"""
Rule-based wellness insights.

evaluate_insights looks at a user's recent moods, journals and chat
sessions (each list newest first) and returns the insights and
recommendations shown on the analytics page. Rules run in a fixed order
and every rule that applies fires; the "Stay Consistent" recommendation
is always appended last.
"""
from typing import List, Sequence, Tuple

from schemas import Insight, Recommendation

LOOKBACK_DAYS = 30
RECENT_MOOD_WINDOW = 7
MOOD_DECLINE_MARGIN = 0.5
MIN_SLEEP_HOURS = 6
CONSISTENT_JOURNALING = 0.5
SPARSE_JOURNALING = 0.1
ACTIVE_CHAT = 0.2


def _mean(values):
    return sum(values) / len(values)


def _mood_trend(moods, insights, recommendations):
    scores = [m["mood_score"] for m in moods]
    overall = _mean(scores)
    recent = _mean(scores[:RECENT_MOOD_WINDOW])
    if recent > overall:
        insights.append(Insight(
            type="positive",
            title="Mood Improvement",
            description="Your mood has been trending upward in the past week!",
        ))
    elif recent < overall - MOOD_DECLINE_MARGIN:
        insights.append(Insight(
            type="concern",
            title="Mood Decline",
            description="Your mood has been lower than usual recently.",
        ))
        recommendations.append(Recommendation(
            category="mood",
            title="Consider Self-Care Activities",
            description="Try engaging in activities that usually make you feel better, "
                        "or consider reaching out to a friend or counselor.",
        ))


def _sleep(moods, insights, recommendations):
    hours = [m["sleep_hours"] for m in moods if m.get("sleep_hours") is not None]
    if not hours:
        return
    average = _mean(hours)
    if average < MIN_SLEEP_HOURS:
        insights.append(Insight(
            type="concern",
            title="Insufficient Sleep",
            description=f"Your average sleep is {average:.1f} hours, which may be affecting your mood.",
        ))
        recommendations.append(Recommendation(
            category="sleep",
            title="Improve Sleep Hygiene",
            description="Try to maintain a consistent sleep schedule and aim for 7-9 hours of sleep per night.",
        ))


def _journaling(journals, insights, recommendations):
    # entries per day over the lookback
    frequency = len(journals) / LOOKBACK_DAYS
    if frequency > CONSISTENT_JOURNALING:
        insights.append(Insight(
            type="positive",
            title="Consistent Journaling",
            description="You've been maintaining a good journaling habit!",
        ))
    elif frequency < SPARSE_JOURNALING:
        recommendations.append(Recommendation(
            category="journaling",
            title="Regular Journaling",
            description="Consider writing in your journal more regularly to track your thoughts and feelings.",
        ))


def _chat_engagement(chats, insights):
    if len(chats) / LOOKBACK_DAYS > ACTIVE_CHAT:
        insights.append(Insight(
            type="positive",
            title="Active Support Seeking",
            description="You've been actively using the AI chat for support.",
        ))


def evaluate_insights(moods: Sequence[dict], journals: Sequence[dict],
                      chats: Sequence[dict]) -> Tuple[List[Insight], List[Recommendation]]:
    insights: List[Insight] = []
    recommendations: List[Recommendation] = []

    if moods:
        _mood_trend(moods, insights, recommendations)
        _sleep(moods, insights, recommendations)
    if journals:
        _journaling(journals, insights, recommendations)
    if chats:
        _chat_engagement(chats, insights)

    recommendations.append(Recommendation(
        category="general",
        title="Stay Consistent",
        description="Regular mood tracking and journaling can help you better understand "
                    "your mental health patterns.",
    ))
    return insights, recommendations
