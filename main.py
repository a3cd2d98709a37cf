import logging
import math
import os
import secrets
import string
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Header, HTTPException, Query
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from jose import JWTError, jwt

from analytics import (
    DEFAULT_GRANULARITY,
    compute_chat_stats,
    compute_dashboard_summary,
    compute_journal_stats,
    compute_mood_stats,
    compute_mood_trends,
    compute_wellness_insights,
)
from database import CHATS, JOURNALS, MOODS, RecordStore, count_words, db, serialize
from errors import AnalyticsError, QueryFailure
from periods import DEFAULT_PERIOD, utc_now
from schemas import (
    ChatFeedback,
    ChatMessage,
    ChatSession,
    ChatSessionUpdate,
    ChatStatsResponse,
    ChatTopic,
    DashboardResponse,
    Granularity,
    InsightsResponse,
    JournalCategory,
    JournalEntry,
    JournalStatsResponse,
    JournalUpdate,
    MoodEntry,
    MoodLabel,
    MoodStatsResponse,
    MoodTrendsResponse,
    MoodUpdate,
    Period,
)

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "soulscribe-dev-secret")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
WORDS_PER_MINUTE = 200


@asynccontextmanager
async def lifespan(app: FastAPI):
    if db is not None:
        RecordStore(db).ensure_indexes()
    else:
        logger.warning("DATABASE_URL/DATABASE_NAME not set; record routes will fail")
    yield


app = FastAPI(title="SoulScribe Wellness API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[os.getenv("FRONTEND_URL", "*")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": "Validation failed", "details": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(QueryFailure)
async def query_failure_handler(request, exc: QueryFailure):
    logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=500,
        content={"error": "Database error", "message": "Internal server error"},
    )


# ---------- Dependencies ----------
def get_store() -> RecordStore:
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    return RecordStore(db)


def get_current_user(authorization: Optional[str] = Header(None)) -> str:
    """Resolve the user id from an `Authorization: Bearer <jwt>` header."""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Access token required")
    token = authorization[len("Bearer "):]
    try:
        payload = jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return str(user_id)


def _not_found(what: str):
    return HTTPException(status_code=404, detail=f"{what} not found")


def _analytics_failure(what: str) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={"error": f"Failed to fetch {what}", "message": "Internal server error"},
    )


@app.get("/")
def read_root():
    return {"message": "SoulScribe API running"}


@app.get("/api/health")
def health():
    return {
        "status": "OK",
        "message": "SoulScribe API is running",
        "database": "configured" if db is not None else "not configured",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


# ---------- Moods ----------
@app.post("/api/moods", status_code=201)
def create_mood(payload: MoodEntry, user_id: str = Depends(get_current_user),
                store: RecordStore = Depends(get_store)):
    data = payload.model_dump()
    data["user_id"] = user_id
    _id = store.create_document(MOODS, data)
    logger.info("Mood entry %s created for %s", _id, user_id)
    return {"message": "Mood entry created successfully", "mood": serialize(store.find_owned(MOODS, user_id, _id))}


@app.get("/api/moods")
def list_moods(page: int = Query(1, ge=1), limit: int = Query(20, ge=1, le=100),
               mood: Optional[MoodLabel] = None, user_id: str = Depends(get_current_user),
               store: RecordStore = Depends(get_store)):
    query = {"user_id": user_id}
    if mood:
        query["mood"] = mood
    result = store.page(MOODS, query, page, limit)
    return {"moods": result["items"], "pagination": result["pagination"]}


@app.get("/api/moods/stats", response_model=MoodStatsResponse)
def mood_stats(period: Period = DEFAULT_PERIOD, user_id: str = Depends(get_current_user),
               store: RecordStore = Depends(get_store)):
    try:
        return compute_mood_stats(store, user_id, period)
    except AnalyticsError:
        logger.exception("Mood statistics failed for %s", user_id)
        return _analytics_failure("mood statistics")


@app.get("/api/moods/{mood_id}")
def get_mood(mood_id: str, user_id: str = Depends(get_current_user),
             store: RecordStore = Depends(get_store)):
    doc = store.find_owned(MOODS, user_id, mood_id)
    if doc is None:
        raise _not_found("Mood entry")
    return {"mood": serialize(doc)}


@app.put("/api/moods/{mood_id}")
def update_mood(mood_id: str, payload: MoodUpdate, user_id: str = Depends(get_current_user),
                store: RecordStore = Depends(get_store)):
    doc = store.update_owned(MOODS, user_id, mood_id, payload.model_dump(exclude_none=True))
    if doc is None:
        raise _not_found("Mood entry")
    return {"message": "Mood entry updated successfully", "mood": serialize(doc)}


@app.delete("/api/moods/{mood_id}")
def delete_mood(mood_id: str, user_id: str = Depends(get_current_user),
                store: RecordStore = Depends(get_store)):
    if not store.delete_owned(MOODS, user_id, mood_id):
        raise _not_found("Mood entry")
    return {"message": "Mood entry deleted successfully"}


# ---------- Journal ----------
def _derived_counts(content: str) -> dict:
    words = count_words(content)
    return {"word_count": words, "reading_time": math.ceil(words / WORDS_PER_MINUTE)}


@app.post("/api/journals", status_code=201)
def create_journal(payload: JournalEntry, user_id: str = Depends(get_current_user),
                   store: RecordStore = Depends(get_store)):
    data = payload.model_dump()
    if len(data["content"].strip()) == 0:
        raise HTTPException(status_code=400, detail="Text required")
    data.update(_derived_counts(data["content"]))
    data.update(user_id=user_id, is_favorite=False, is_archived=False)
    _id = store.create_document(JOURNALS, data)
    logger.info("Journal entry %s created for %s", _id, user_id)
    return {"message": "Journal entry created successfully",
            "journal": serialize(store.find_owned(JOURNALS, user_id, _id))}


@app.get("/api/journals")
def list_journals(page: int = Query(1, ge=1), limit: int = Query(20, ge=1, le=100),
                  category: Optional[JournalCategory] = None, user_id: str = Depends(get_current_user),
                  store: RecordStore = Depends(get_store)):
    query = {"user_id": user_id, "is_archived": {"$ne": True}}
    if category:
        query["category"] = category
    result = store.page(JOURNALS, query, page, limit)
    return {"journals": result["items"], "pagination": result["pagination"]}


@app.get("/api/journals/stats/overview", response_model=JournalStatsResponse)
def journal_stats(user_id: str = Depends(get_current_user), store: RecordStore = Depends(get_store)):
    try:
        return compute_journal_stats(store, user_id)
    except AnalyticsError:
        logger.exception("Journal statistics failed for %s", user_id)
        return _analytics_failure("journal statistics")


@app.get("/api/journals/{journal_id}")
def get_journal(journal_id: str, user_id: str = Depends(get_current_user),
                store: RecordStore = Depends(get_store)):
    doc = store.find_owned(JOURNALS, user_id, journal_id)
    if doc is None:
        raise _not_found("Journal entry")
    return {"journal": serialize(doc)}


@app.put("/api/journals/{journal_id}")
def update_journal(journal_id: str, payload: JournalUpdate, user_id: str = Depends(get_current_user),
                   store: RecordStore = Depends(get_store)):
    changes = payload.model_dump(exclude_none=True)
    if "content" in changes:
        if len(changes["content"].strip()) == 0:
            raise HTTPException(status_code=400, detail="Text required")
        changes.update(_derived_counts(changes["content"]))
    doc = store.update_owned(JOURNALS, user_id, journal_id, changes)
    if doc is None:
        raise _not_found("Journal entry")
    return {"message": "Journal entry updated successfully", "journal": serialize(doc)}


@app.patch("/api/journals/{journal_id}/favorite")
def toggle_favorite(journal_id: str, user_id: str = Depends(get_current_user),
                    store: RecordStore = Depends(get_store)):
    doc = store.find_owned(JOURNALS, user_id, journal_id)
    if doc is None:
        raise _not_found("Journal entry")
    doc = store.update_owned(JOURNALS, user_id, journal_id, {"is_favorite": not doc.get("is_favorite", False)})
    return {"message": "Journal favorite status updated", "journal": serialize(doc)}


@app.patch("/api/journals/{journal_id}/archive")
def archive_journal(journal_id: str, user_id: str = Depends(get_current_user),
                    store: RecordStore = Depends(get_store)):
    doc = store.update_owned(JOURNALS, user_id, journal_id, {"is_archived": True})
    if doc is None:
        raise _not_found("Journal entry")
    return {"message": "Journal entry archived successfully", "journal": serialize(doc)}


@app.delete("/api/journals/{journal_id}")
def delete_journal(journal_id: str, user_id: str = Depends(get_current_user),
                   store: RecordStore = Depends(get_store)):
    if not store.delete_owned(JOURNALS, user_id, journal_id):
        raise _not_found("Journal entry")
    return {"message": "Journal entry deleted successfully"}


# ---------- Chat ----------
def new_session_id() -> str:
    suffix = "".join(secrets.choice(string.ascii_lowercase + string.digits) for _ in range(9))
    return f"session_{int(time.time() * 1000)}_{suffix}"


@app.post("/api/chats/sessions", status_code=201)
def create_chat_session(payload: Optional[ChatSession] = None, user_id: str = Depends(get_current_user),
                        store: RecordStore = Depends(get_store)):
    data = (payload or ChatSession()).model_dump()
    data.update(user_id=user_id, session_id=new_session_id(), messages=[], is_active=True)
    _id = store.create_document(CHATS, data)
    logger.info("Chat session %s created for %s", data["session_id"], user_id)
    return {"message": "Chat session created successfully", "chat": serialize(store.find_owned(CHATS, user_id, _id))}


@app.get("/api/chats/sessions")
def list_chat_sessions(page: int = Query(1, ge=1), limit: int = Query(20, ge=1, le=50),
                       topic: Optional[ChatTopic] = None, active: Optional[bool] = None,
                       user_id: str = Depends(get_current_user), store: RecordStore = Depends(get_store)):
    query = {"user_id": user_id}
    if topic:
        query["context.topic"] = topic
    if active is not None:
        query["is_active"] = active
    result = store.page(CHATS, query, page, limit, sort_field="updated_at", projection={"messages": 0})
    return {"chats": result["items"], "pagination": result["pagination"]}


@app.get("/api/chats/stats/overview", response_model=ChatStatsResponse)
def chat_stats(user_id: str = Depends(get_current_user), store: RecordStore = Depends(get_store)):
    try:
        return compute_chat_stats(store, user_id)
    except AnalyticsError:
        logger.exception("Chat statistics failed for %s", user_id)
        return _analytics_failure("chat statistics")


@app.get("/api/chats/sessions/{session_id}")
def get_chat_session(session_id: str, user_id: str = Depends(get_current_user),
                     store: RecordStore = Depends(get_store)):
    doc = store.find_session(user_id, session_id)
    if doc is None:
        raise _not_found("Chat session")
    return {"chat": serialize(doc)}


@app.put("/api/chats/sessions/{session_id}")
def update_chat_session(session_id: str, payload: ChatSessionUpdate, user_id: str = Depends(get_current_user),
                        store: RecordStore = Depends(get_store)):
    doc = store.update_session(user_id, session_id, payload.model_dump(exclude_none=True))
    if doc is None:
        raise _not_found("Chat session")
    if doc.get("is_active") is False:
        logger.info("Chat session %s ended for %s", session_id, user_id)
    return {"message": "Chat session updated successfully", "chat": serialize(doc)}


@app.delete("/api/chats/sessions/{session_id}")
def delete_chat_session(session_id: str, user_id: str = Depends(get_current_user),
                        store: RecordStore = Depends(get_store)):
    if not store.delete_session(user_id, session_id):
        raise _not_found("Chat session")
    return {"message": "Chat session deleted successfully"}


@app.post("/api/chats/sessions/{session_id}/messages", status_code=201)
def add_chat_message(session_id: str, payload: ChatMessage, user_id: str = Depends(get_current_user),
                     store: RecordStore = Depends(get_store)):
    message = payload.model_dump()
    message["timestamp"] = utc_now()
    if store.append_message(user_id, session_id, message) is None:
        raise HTTPException(status_code=404, detail="Chat session not found or inactive")
    return {"message": "Message added successfully", "chat_message": message, "session_id": session_id}


@app.post("/api/chats/sessions/{session_id}/feedback")
def add_chat_feedback(session_id: str, payload: ChatFeedback, user_id: str = Depends(get_current_user),
                      store: RecordStore = Depends(get_store)):
    doc = store.set_feedback(user_id, session_id, payload.model_dump())
    if doc is None:
        raise _not_found("Chat session")
    return {"message": "Feedback added successfully", "chat": serialize(doc)}


# ---------- Analytics ----------
@app.get("/api/analytics/dashboard", response_model=DashboardResponse)
def dashboard_analytics(period: Period = DEFAULT_PERIOD, user_id: str = Depends(get_current_user),
                        store: RecordStore = Depends(get_store)):
    try:
        return compute_dashboard_summary(store, user_id, period)
    except AnalyticsError:
        logger.exception("Dashboard analytics failed for %s", user_id)
        return _analytics_failure("dashboard analytics")


@app.get("/api/analytics/mood-trends", response_model=MoodTrendsResponse)
def mood_trends(period: Period = DEFAULT_PERIOD, granularity: Granularity = DEFAULT_GRANULARITY,
                user_id: str = Depends(get_current_user), store: RecordStore = Depends(get_store)):
    try:
        return compute_mood_trends(store, user_id, period, granularity)
    except AnalyticsError:
        logger.exception("Mood trends failed for %s", user_id)
        return _analytics_failure("mood trends")


@app.get("/api/analytics/insights", response_model=InsightsResponse)
def wellness_insights(user_id: str = Depends(get_current_user), store: RecordStore = Depends(get_store)):
    try:
        return compute_wellness_insights(store, user_id)
    except AnalyticsError:
        logger.exception("Insights failed for %s", user_id)
        return _analytics_failure("insights")


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
