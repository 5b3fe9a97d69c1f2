"""
Clock event normalization.
Validates raw clock entries and coerces them into NormalizedEvent records.
Bad records are dropped and counted, never raised.
"""
from typing import Any, Iterable, List, Mapping, Union

import structlog
from pydantic import ValidationError

from ..schemas.clocking import (
    NormalizationResult,
    NormalizedEvent,
    PipelineDiagnostics,
    RawEvent,
)

logger = structlog.get_logger(__name__)

# pydantic error location -> diagnostics counter
_DROP_REASONS = {
    "user_id": "missing_user_id",
    "userId": "missing_user_id",
    "timestamp": "invalid_timestamp",
    "action": "invalid_action",
}


def _drop_reason(exc: ValidationError) -> str:
    fields = [str(err["loc"][0]) for err in exc.errors() if err.get("loc")]
    # user id problems win over timestamp problems, which win over action problems
    for field in ("user_id", "userId", "timestamp", "action"):
        if field in fields:
            return _DROP_REASONS[field]
    return "malformed_records"


def _as_mapping(record: Union[RawEvent, Mapping[str, Any]]) -> Mapping[str, Any]:
    if isinstance(record, RawEvent):
        return record.model_dump()
    return record


def normalize_events(raw_events: Iterable[Union[RawEvent, Mapping[str, Any]]]) -> NormalizationResult:
    """
    Validate and coerce raw clock entries.

    Args:
        raw_events: dicts shaped like RawEvent (camelCase aliases accepted) or RawEvent models

    Returns:
        NormalizationResult with events in input order and drop counts
    """
    diagnostics = PipelineDiagnostics()
    events: List[NormalizedEvent] = []

    for position, record in enumerate(raw_events):
        if not isinstance(record, (RawEvent, Mapping)):
            diagnostics.malformed_records += 1
            logger.warning("clock_event_dropped", reason="not_a_record", position=position)
            continue
        try:
            raw = RawEvent.model_validate(_as_mapping(record))
        except ValidationError as exc:
            reason = _drop_reason(exc)
            setattr(diagnostics, reason, getattr(diagnostics, reason) + 1)
            logger.warning(
                "clock_event_dropped",
                reason=reason,
                position=position,
                entry_id=_as_mapping(record).get("id"),
            )
            continue
        events.append(NormalizedEvent(**raw.model_dump(), sequence=position))

    return NormalizationResult(events=events, diagnostics=diagnostics)


def normalize(raw_events: Iterable[Union[RawEvent, Mapping[str, Any]]]) -> List[NormalizedEvent]:
    return normalize_events(raw_events).events


def drop_duplicate_events(events: Iterable[NormalizedEvent]) -> NormalizationResult:
    """
    Remove repeated entries for the same user, action, instant and leave flag.
    The first occurrence in input order is kept.
    """
    seen = set()
    unique: List[NormalizedEvent] = []
    duplicates = 0
    for event in events:
        key = (event.user_id, event.action, event.timestamp, event.is_leave_day)
        if key in seen:
            duplicates += 1
            continue
        seen.add(key)
        unique.append(event)

    if duplicates:
        logger.info("duplicate_clock_events_removed", count=duplicates)
    return NormalizationResult(events=unique, diagnostics=PipelineDiagnostics(duplicate_events=duplicates))
