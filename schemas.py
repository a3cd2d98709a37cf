"""
Database Schemas for the SoulScribe Wellness API

Each record Pydantic model represents a MongoDB collection.
Collection name = lowercase of class name (e.g., MoodEntry -> "moodentry").
The owning user_id and the created_at/updated_at stamps are added by the
store, never taken from the request body.

The analytics response models at the bottom serialize with camelCase
aliases, which is the shape the dashboard frontend reads.
"""
from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Annotated, Optional, List, Literal, Dict, Any
from datetime import datetime, timezone

Period = Literal['week', 'month', 'quarter', 'year']
Granularity = Literal['day', 'week', 'month']


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# Stored stamps are naive UTC; responses carry the offset explicitly.
UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]

MoodLabel = Literal['very-sad', 'sad', 'neutral', 'happy', 'very-happy']

Emotion = Literal[
    'anxious', 'stressed', 'overwhelmed', 'depressed', 'lonely',
    'angry', 'frustrated', 'confused', 'tired', 'energetic',
    'calm', 'peaceful', 'grateful', 'hopeful', 'excited',
    'confident', 'loved', 'proud', 'content', 'motivated',
]

Activity = Literal[
    'work', 'exercise', 'socializing', 'family-time', 'hobbies',
    'meditation', 'reading', 'music', 'movies', 'cooking',
    'shopping', 'traveling', 'studying', 'gaming', 'sleeping',
    'eating', 'therapy', 'volunteering', 'nature', 'art',
]

JournalCategory = Literal['daily', 'gratitude', 'goals', 'reflection', 'therapy', 'dreams', 'other']

ChatTopic = Literal[
    'general', 'anxiety', 'depression', 'stress', 'relationships',
    'work', 'sleep', 'self-care', 'goals', 'coping-strategies',
    'therapy', 'medication', 'mindfulness', 'exercise', 'nutrition',
]


# ---------- Records ----------
class MoodEntry(BaseModel):
    mood: MoodLabel
    mood_score: int = Field(..., ge=1, le=5, description="1=very sad, 5=very happy")
    emotions: List[Emotion] = Field(default_factory=list)
    activities: List[Activity] = Field(default_factory=list)
    triggers: List[str] = Field(default_factory=list)
    notes: Optional[str] = Field(None, max_length=1000)
    stress_level: Optional[int] = Field(None, ge=1, le=10)
    energy_level: Optional[int] = Field(None, ge=1, le=10)
    sleep_hours: Optional[float] = Field(None, ge=0, le=24)
    is_private: bool = False


class JournalEntry(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1, max_length=10000)
    mood: Optional[MoodLabel] = None
    emotions: List[Emotion] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    category: JournalCategory = 'daily'
    is_private: bool = True


class MoodUpdate(BaseModel):
    mood: Optional[MoodLabel] = None
    mood_score: Optional[int] = Field(None, ge=1, le=5)
    emotions: Optional[List[Emotion]] = None
    activities: Optional[List[Activity]] = None
    triggers: Optional[List[str]] = None
    notes: Optional[str] = Field(None, max_length=1000)
    stress_level: Optional[int] = Field(None, ge=1, le=10)
    energy_level: Optional[int] = Field(None, ge=1, le=10)
    sleep_hours: Optional[float] = Field(None, ge=0, le=24)
    is_private: Optional[bool] = None


class JournalUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    content: Optional[str] = Field(None, min_length=1, max_length=10000)
    mood: Optional[MoodLabel] = None
    tags: Optional[List[str]] = None
    category: Optional[JournalCategory] = None
    emotions: Optional[List[Emotion]] = None
    is_private: Optional[bool] = None


class ChatContext(BaseModel):
    topic: ChatTopic = 'general'
    mood: Optional[MoodLabel] = None
    urgency: Literal['low', 'medium', 'high', 'crisis'] = 'low'
    tags: List[str] = Field(default_factory=list)


class ChatSession(BaseModel):
    context: ChatContext = Field(default_factory=ChatContext)
    ai_personality: Literal['supportive', 'professional', 'casual', 'empathetic'] = 'supportive'


class ChatSessionUpdate(BaseModel):
    context: Optional[ChatContext] = None
    summary: Optional[str] = Field(None, max_length=500)
    is_active: Optional[bool] = None


class ChatMessage(BaseModel):
    role: Literal['user', 'assistant', 'system']
    content: str = Field(..., min_length=1, max_length=5000)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ChatFeedback(BaseModel):
    helpful: bool
    rating: Optional[int] = Field(None, ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=500)


# ---------- Analytics responses ----------
class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MoodSummary(CamelModel):
    total_entries: int = 0
    average_mood_score: Optional[float] = 0
    average_stress_level: Optional[float] = 0
    average_energy_level: Optional[float] = 0
    average_sleep_hours: Optional[float] = 0


class JournalSummary(CamelModel):
    total_entries: int = 0
    total_words: int = 0
    average_words_per_entry: Optional[float] = 0
    favorite_count: int = 0


class ChatSummary(CamelModel):
    total_sessions: int = 0
    total_messages: int = 0
    average_rating: Optional[float] = 0


class DashboardSummary(CamelModel):
    mood: MoodSummary
    journal: JournalSummary
    chat: ChatSummary


class Distributions(CamelModel):
    mood: Dict[str, int] = Field(default_factory=dict)
    emotions: Dict[str, int] = Field(default_factory=dict)
    journal_categories: Dict[str, int] = Field(default_factory=dict)
    chat_topics: Dict[str, int] = Field(default_factory=dict)


class RecentMood(CamelModel):
    id: str
    mood: Optional[str] = None
    mood_score: Optional[int] = None
    created_at: UtcDatetime


class RecentJournal(CamelModel):
    id: str
    title: Optional[str] = None
    category: Optional[str] = None
    created_at: UtcDatetime


class RecentChat(CamelModel):
    id: str
    session_id: str
    topic: Optional[str] = None
    updated_at: Optional[UtcDatetime] = None


class RecentActivity(CamelModel):
    moods: List[RecentMood] = Field(default_factory=list)
    journals: List[RecentJournal] = Field(default_factory=list)
    chats: List[RecentChat] = Field(default_factory=list)


class DashboardResponse(CamelModel):
    period: str
    summary: DashboardSummary
    distributions: Distributions
    recent_activity: RecentActivity


class TrendBucket(CamelModel):
    bucket: str
    average_mood_score: Optional[float] = None
    average_stress_level: Optional[float] = None
    average_energy_level: Optional[float] = None
    average_sleep_hours: Optional[float] = None
    entry_count: int


class MoodTrendsResponse(CamelModel):
    period: str
    granularity: str
    trends: List[TrendBucket]


class Insight(CamelModel):
    type: Literal['positive', 'concern']
    title: str
    description: str


class Recommendation(CamelModel):
    category: Literal['mood', 'sleep', 'journaling', 'general']
    title: str
    description: str


class DataPoints(CamelModel):
    mood_entries: int
    journal_entries: int
    chat_sessions: int


class InsightsResponse(CamelModel):
    insights: List[Insight]
    recommendations: List[Recommendation]
    data_points: DataPoints


# ---------- Record statistics ----------
class MoodStatsResponse(CamelModel):
    period: str
    stats: MoodSummary
    mood_distribution: Dict[str, int] = Field(default_factory=dict)


class JournalOverview(JournalSummary):
    total_reading_time: int = 0


class JournalStatsResponse(CamelModel):
    stats: JournalOverview
    category_distribution: Dict[str, int] = Field(default_factory=dict)


class ChatOverview(ChatSummary):
    active_sessions: int = 0


class ChatStatsResponse(CamelModel):
    stats: ChatOverview
    topic_distribution: Dict[str, int] = Field(default_factory=dict)
