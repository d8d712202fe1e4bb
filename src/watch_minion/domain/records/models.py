"""
Tracked-entry domain models.

Contains the local Record shape, its watch events, and the local-only
sync-state tag. Records persist in the local store through
``record_to_dict`` / ``record_from_dict``; the cloud shape lives in
``domain.sync.transcoder``.
"""

import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

UUID_V4_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Runtime is minutes for films, or {seasons, episodes, episode_run_time} for series
Runtime = Union[int, Dict[str, Any], None]


class SyncState(str, Enum):
    """Local-only marker for whether and how a record needs pushing."""

    NEW = "new"
    EDITED = "edited"
    DELETED = "deleted"
    SYNCED = "synced"


def new_id() -> str:
    """Generate a collision-resistant random identifier (UUID v4)."""
    return str(uuid.uuid4())


def is_valid_uuid(value: Any) -> bool:
    return isinstance(value, str) and bool(UUID_V4_PATTERN.match(value))


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Render a timestamp as ISO-8601 UTC with millisecond precision."""
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string (or datetime) into an aware UTC datetime.

    Returns None for anything that cannot be interpreted as a timestamp.
    Naive values are assumed to be UTC.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


@dataclass
class WatchEvent:
    """A single viewing of a record."""

    watch_id: str
    date: Optional[str] = None  # YYYY-MM-DD
    rating: Optional[float] = None
    notes: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "watchId": self.watch_id,
            "date": self.date,
            "rating": self.rating,
            "notes": self.notes,
        }


@dataclass
class Record:
    """A tracked movie, series or documentary with its full attribute set.

    ``last_modified`` is authoritative for conflict resolution.
    ``sync_state`` is never transmitted to the cloud.
    """

    id: str
    name: str = "Untitled Entry"
    category: str = "Movie"
    genre: str = ""
    status: str = "To Watch"
    seasons_completed: Optional[int] = None
    current_season_episodes_watched: Optional[int] = None
    recommendation: Optional[str] = None
    overall_rating: Optional[float] = None
    personal_recommendation: Optional[str] = None
    language: Optional[str] = None
    year: Optional[int] = None
    country: Optional[str] = None
    description: Optional[str] = None
    poster_url: Optional[str] = None
    watch_history: List[WatchEvent] = field(default_factory=list)
    related_entries: List[str] = field(default_factory=list)
    do_not_recommend_daily: bool = False
    last_modified: datetime = field(default_factory=utc_now)
    tmdb_id: Optional[int] = None
    tmdb_media_type: Optional[str] = None
    keywords: List[Any] = field(default_factory=list)
    tmdb_collection_id: Optional[int] = None
    tmdb_collection_name: Optional[str] = None
    tmdb_collection_total_parts: Optional[int] = None
    director_info: Optional[Dict[str, Any]] = None
    full_cast: List[Any] = field(default_factory=list)
    production_companies: List[Any] = field(default_factory=list)
    tmdb_vote_average: Optional[float] = None
    tmdb_vote_count: Optional[int] = None
    runtime: Runtime = None
    imdb_id: Optional[str] = None
    is_deleted: bool = False
    sync_state: SyncState = SyncState.NEW


# Attributes a user (or batch edit) may change through update_record
EDITABLE_FIELDS = frozenset(
    name
    for name in Record.__dataclass_fields__
    if name not in {"id", "last_modified", "is_deleted", "sync_state"}
)


def record_to_dict(record: Record) -> Dict[str, Any]:
    """Serialize a record for the local durable store (includes sync state)."""
    return {
        "id": record.id,
        "name": record.name,
        "category": record.category,
        "genre": record.genre,
        "status": record.status,
        "seasons_completed": record.seasons_completed,
        "current_season_episodes_watched": record.current_season_episodes_watched,
        "recommendation": record.recommendation,
        "overall_rating": record.overall_rating,
        "personal_recommendation": record.personal_recommendation,
        "language": record.language,
        "year": record.year,
        "country": record.country,
        "description": record.description,
        "poster_url": record.poster_url,
        "watch_history": [event.to_dict() for event in record.watch_history],
        "related_entries": list(record.related_entries),
        "do_not_recommend_daily": record.do_not_recommend_daily,
        "last_modified": format_timestamp(record.last_modified),
        "tmdb_id": record.tmdb_id,
        "tmdb_media_type": record.tmdb_media_type,
        "keywords": list(record.keywords),
        "tmdb_collection_id": record.tmdb_collection_id,
        "tmdb_collection_name": record.tmdb_collection_name,
        "tmdb_collection_total_parts": record.tmdb_collection_total_parts,
        "director_info": record.director_info,
        "full_cast": list(record.full_cast),
        "production_companies": list(record.production_companies),
        "tmdb_vote_average": record.tmdb_vote_average,
        "tmdb_vote_count": record.tmdb_vote_count,
        "runtime": record.runtime,
        "imdb_id": record.imdb_id,
        "is_deleted": record.is_deleted,
        "sync_state": record.sync_state.value,
    }


def record_from_dict(data: Dict[str, Any]) -> Record:
    """Rebuild a record from the local durable store.

    Values were written by ``record_to_dict`` so they are trusted; only
    missing keys fall back to defaults.
    """
    last_modified = parse_timestamp(data.get("last_modified")) or utc_now()
    try:
        sync_state = SyncState(data.get("sync_state", SyncState.NEW.value))
    except ValueError:
        sync_state = SyncState.EDITED

    return Record(
        id=data["id"],
        name=data.get("name") or "Untitled Entry",
        category=data.get("category") or "Movie",
        genre=data.get("genre") or "",
        status=data.get("status") or "To Watch",
        seasons_completed=data.get("seasons_completed"),
        current_season_episodes_watched=data.get("current_season_episodes_watched"),
        recommendation=data.get("recommendation"),
        overall_rating=data.get("overall_rating"),
        personal_recommendation=data.get("personal_recommendation"),
        language=data.get("language"),
        year=data.get("year"),
        country=data.get("country"),
        description=data.get("description"),
        poster_url=data.get("poster_url"),
        watch_history=[
            WatchEvent(
                watch_id=event.get("watchId") or new_id(),
                date=event.get("date"),
                rating=event.get("rating"),
                notes=event.get("notes") or "",
            )
            for event in data.get("watch_history") or []
            if isinstance(event, dict)
        ],
        related_entries=list(data.get("related_entries") or []),
        do_not_recommend_daily=bool(data.get("do_not_recommend_daily", False)),
        last_modified=last_modified,
        tmdb_id=data.get("tmdb_id"),
        tmdb_media_type=data.get("tmdb_media_type"),
        keywords=list(data.get("keywords") or []),
        tmdb_collection_id=data.get("tmdb_collection_id"),
        tmdb_collection_name=data.get("tmdb_collection_name"),
        tmdb_collection_total_parts=data.get("tmdb_collection_total_parts"),
        director_info=data.get("director_info"),
        full_cast=list(data.get("full_cast") or []),
        production_companies=list(data.get("production_companies") or []),
        tmdb_vote_average=data.get("tmdb_vote_average"),
        tmdb_vote_count=data.get("tmdb_vote_count"),
        runtime=data.get("runtime"),
        imdb_id=data.get("imdb_id"),
        is_deleted=bool(data.get("is_deleted", False)),
        sync_state=sync_state,
    )
