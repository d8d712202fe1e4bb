"""
Record transcoding between the local store shape and cloud rows.

Explicit field-by-field mapping in both directions. Numeric-like values are
normalized from strings/empty values to numbers or None, collection fields
default to empty lists, malformed nested watch-event ids are regenerated,
and bad timestamps are coerced (with a warning) instead of failing the
record. The only side effect is identifier generation.
"""

import math
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from loguru import logger

from watch_minion.domain.records.models import (
    EPOCH,
    Record,
    Runtime,
    SyncState,
    WatchEvent,
    format_timestamp,
    is_valid_uuid,
    new_id,
    parse_timestamp,
    utc_now,
)

from .exceptions import InvalidRecordError, InvalidRemoteRowError, TranscodeError


@dataclass(frozen=True)
class RemoteRow:
    """One row of the cloud table. Carries no sync state."""

    id: str
    user_id: str
    name: str
    category: str
    genre: str
    status: str
    seasons_completed: Optional[int]
    current_season_episodes_watched: Optional[int]
    recommendation: Optional[str]
    overall_rating: Optional[float]
    personal_recommendation: Optional[str]
    language: Optional[str]
    year: Optional[int]
    country: Optional[str]
    description: Optional[str]
    poster_url: Optional[str]
    watch_history: List[Dict[str, Any]]
    related_entries: List[str]
    do_not_recommend_daily: bool
    last_modified_date: str
    tmdb_id: Optional[int]
    tmdb_media_type: Optional[str]
    keywords: List[Any]
    tmdb_collection_id: Optional[int]
    tmdb_collection_name: Optional[str]
    tmdb_collection_total_parts: Optional[int]
    director_info: Optional[Dict[str, Any]]
    full_cast: List[Any]
    production_companies: List[Any]
    tmdb_vote_average: Optional[float]
    tmdb_vote_count: Optional[int]
    runtime: Runtime
    is_deleted: bool = False
    imdb_id: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        """Payload sent over the wire."""
        return asdict(self)


# ==================== Normalization helpers ====================


def parse_int(value: Any) -> Optional[int]:
    """Normalize an int-like value ("2019", 2019, "", None) to int or None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return int(text)
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            return None
        return int(number) if math.isfinite(number) else None
    return None


def parse_float(value: Any) -> Optional[float]:
    """Normalize a float-like value ("7.5", 7, "", None) to float or None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _text(value: Any, default: Optional[str] = None) -> Optional[str]:
    """Non-empty string or default."""
    if value is None:
        return default
    text = str(value)
    return text if text else default


def _list(value: Any) -> List[Any]:
    return list(value) if isinstance(value, (list, tuple)) else []


def _runtime(value: Any) -> Runtime:
    if isinstance(value, dict):
        return dict(value)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float, str)):
        return parse_int(value)
    return None


def normalize_watch_history(events: Any) -> List[WatchEvent]:
    """Coerce a watch-history value into WatchEvents.

    Non-object entries are dropped; missing or malformed watch ids are
    regenerated; ratings are normalized to float or None.
    """
    normalized = []
    for event in _list(events):
        if isinstance(event, WatchEvent):
            event = event.to_dict()
        if not isinstance(event, Mapping):
            logger.warning(f"Dropping malformed watch event: {event!r}")
            continue

        watch_id = event.get("watchId") or event.get("watch_id")
        if not is_valid_uuid(watch_id):
            watch_id = new_id()

        normalized.append(
            WatchEvent(
                watch_id=watch_id,
                date=_text(event.get("date")),
                rating=parse_float(event.get("rating")),
                notes=_text(event.get("notes"), "") or "",
            )
        )
    return normalized


def normalize_outbound_timestamp(record_id: str, value: Any) -> str:
    """Render a record's last-modified for the cloud, coercing bad values to now."""
    parsed = parse_timestamp(value)
    if parsed is None:
        logger.warning(
            f"Invalid last_modified for {record_id}, using current time. Original: {value!r}"
        )
        parsed = utc_now()
    return format_timestamp(parsed)


def normalize_inbound_timestamp(record_id: str, value: Any):
    """Parse a cloud row's last-modified.

    Missing values become the epoch so the row never beats a local edit;
    malformed values become now, with a warning.
    """
    if value is None or value == "":
        return EPOCH
    parsed = parse_timestamp(value)
    if parsed is None:
        logger.warning(
            f"Invalid last_modified_date on cloud row {record_id}, using current time. "
            f"Original: {value!r}"
        )
        return utc_now()
    return parsed


# ==================== Local -> Remote ====================


def to_remote(record: Record, owner_id: str) -> RemoteRow:
    """Convert a local record to a cloud row owned by ``owner_id``.

    Raises:
        InvalidRecordError: If the record has no identifier or the owner is missing
    """
    if record is None or not getattr(record, "id", None):
        raise InvalidRecordError("Record has no identifier")
    if not owner_id:
        raise InvalidRecordError(f"No owner for record {record.id}")

    return RemoteRow(
        id=record.id,
        user_id=owner_id,
        name=_text(record.name, "Untitled Entry"),
        category=_text(record.category, "Movie"),
        genre=_text(record.genre, ""),
        status=_text(record.status, "To Watch"),
        seasons_completed=parse_int(record.seasons_completed),
        current_season_episodes_watched=parse_int(
            record.current_season_episodes_watched
        ),
        recommendation=_text(record.recommendation),
        overall_rating=parse_float(record.overall_rating),
        personal_recommendation=_text(record.personal_recommendation),
        language=_text(record.language),
        year=parse_int(record.year),
        country=_text(record.country),
        description=_text(record.description),
        poster_url=_text(record.poster_url),
        watch_history=[
            event.to_dict() for event in normalize_watch_history(record.watch_history)
        ],
        related_entries=[str(ref) for ref in _list(record.related_entries)],
        do_not_recommend_daily=bool(record.do_not_recommend_daily),
        last_modified_date=normalize_outbound_timestamp(
            record.id, record.last_modified
        ),
        tmdb_id=parse_int(record.tmdb_id),
        tmdb_media_type=_text(record.tmdb_media_type),
        keywords=_list(record.keywords),
        tmdb_collection_id=parse_int(record.tmdb_collection_id),
        tmdb_collection_name=_text(record.tmdb_collection_name),
        tmdb_collection_total_parts=parse_int(record.tmdb_collection_total_parts),
        director_info=(
            dict(record.director_info)
            if isinstance(record.director_info, Mapping)
            else None
        ),
        full_cast=_list(record.full_cast),
        production_companies=_list(record.production_companies),
        tmdb_vote_average=parse_float(record.tmdb_vote_average),
        tmdb_vote_count=parse_int(record.tmdb_vote_count),
        runtime=_runtime(record.runtime),
        is_deleted=bool(record.is_deleted),
        imdb_id=_text(record.imdb_id),
    )


# ==================== Remote -> Local ====================


def to_local(row: Mapping[str, Any]) -> Record:
    """Convert a cloud row to a local record marked ``synced``.

    Raises:
        InvalidRemoteRowError: If the row has no identifier
    """
    if not isinstance(row, Mapping) or not row.get("id"):
        raise InvalidRemoteRowError(f"Cloud row has no identifier: {row!r}")

    record_id = str(row["id"])
    director_info = row.get("director_info")

    return Record(
        id=record_id,
        name=_text(row.get("name"), "Untitled (from Cloud)"),
        category=_text(row.get("category"), "Movie"),
        genre=_text(row.get("genre"), ""),
        status=_text(row.get("status"), "To Watch"),
        seasons_completed=parse_int(row.get("seasons_completed")),
        current_season_episodes_watched=parse_int(
            row.get("current_season_episodes_watched")
        ),
        recommendation=_text(row.get("recommendation")),
        overall_rating=parse_float(row.get("overall_rating")),
        personal_recommendation=_text(row.get("personal_recommendation")),
        language=_text(row.get("language")),
        year=parse_int(row.get("year")),
        country=_text(row.get("country")),
        description=_text(row.get("description")),
        poster_url=_text(row.get("poster_url")),
        watch_history=normalize_watch_history(row.get("watch_history")),
        related_entries=[str(ref) for ref in _list(row.get("related_entries"))],
        do_not_recommend_daily=bool(row.get("do_not_recommend_daily") or False),
        last_modified=normalize_inbound_timestamp(
            record_id, row.get("last_modified_date")
        ),
        tmdb_id=parse_int(row.get("tmdb_id")),
        tmdb_media_type=_text(row.get("tmdb_media_type")),
        keywords=_list(row.get("keywords")),
        tmdb_collection_id=parse_int(row.get("tmdb_collection_id")),
        tmdb_collection_name=_text(row.get("tmdb_collection_name")),
        tmdb_collection_total_parts=parse_int(row.get("tmdb_collection_total_parts")),
        director_info=dict(director_info) if isinstance(director_info, Mapping) else None,
        full_cast=_list(row.get("full_cast")),
        production_companies=_list(row.get("production_companies")),
        tmdb_vote_average=parse_float(row.get("tmdb_vote_average")),
        tmdb_vote_count=parse_int(row.get("tmdb_vote_count")),
        runtime=_runtime(row.get("runtime")),
        imdb_id=_text(row.get("imdb_id")),
        is_deleted=bool(row.get("is_deleted") or False),
        sync_state=SyncState.SYNCED,
    )


# ==================== Batch helpers ====================


def to_remote_batch(
    records: Iterable[Record], owner_id: str
) -> Tuple[List[RemoteRow], List[str]]:
    """Transcode many records, dropping the ones that fail.

    Returns:
        (rows, skipped_record_ids)
    """
    rows, skipped = [], []
    for record in records:
        try:
            rows.append(to_remote(record, owner_id))
        except TranscodeError as e:
            logger.warning(f"Skipping record during push: {e}")
            skipped.append(getattr(record, "id", None) or "<missing id>")
    return rows, skipped


def to_local_batch(rows: Iterable[Mapping[str, Any]]) -> List[Record]:
    """Transcode many cloud rows, dropping the ones that fail."""
    records = []
    for row in rows:
        try:
            records.append(to_local(row))
        except TranscodeError as e:
            logger.warning(f"Skipping cloud row during pull: {e}")
    return records
