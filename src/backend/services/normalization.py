"""
Validation and normalization of activity fields.

Pure functions: they trim, clamp and deduplicate caller input or raise a
typed ActivityError before anything is persisted. The same rules apply to
create and edit; on edit the caller merges supplied values over the stored
record first.
"""

import math
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, Optional

from core.config import settings
from core.exceptions import (
    ActivityValidationError,
    ConflictingAutomationError,
    EmptyRosterError,
    InvalidPriceError,
    TooManyImagesError,
)
from models.documents import EventType, LeaderboardMode, ParticipantSnapshot
from models.org import normalize_org_labels

CENTS = Decimal("0.01")


def clean_text(value: Optional[str]) -> str:
    """Trim a possibly-missing string."""
    return (value or "").strip()


def _finite(value: Any) -> Optional[float]:
    """Return the value as a finite float, or None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def floor_non_negative(value: Any) -> int:
    """Floor to an integer and clamp at zero; non-numbers become zero."""
    number = _finite(value)
    if number is None:
        return 0
    return max(0, math.floor(number))


# ============================================================================
# Shared fields
# ============================================================================


def normalize_title(title: Optional[str], event_type: str) -> str:
    """Trim the title; polls use it as their question."""
    cleaned = clean_text(title)
    if event_type == EventType.POLL:
        if not cleaned:
            raise ActivityValidationError("Poll question is required.")
        if len(cleaned) > settings.POLL_QUESTION_MAX_LENGTH:
            raise ActivityValidationError(
                f"Poll question must be {settings.POLL_QUESTION_MAX_LENGTH} characters or fewer."
            )
    elif not cleaned:
        raise ActivityValidationError("Title is required")
    return cleaned


def normalize_description(description: Optional[str], event_type: str) -> str:
    """Trim the description; only polls may leave it empty."""
    cleaned = clean_text(description)
    if not cleaned and event_type != EventType.POLL:
        raise ActivityValidationError("Description is required")
    return cleaned


def validate_automation(
    publish_at: int,
    auto_delete_at: Optional[int],
    auto_archive_at: Optional[int],
) -> None:
    """Automation instants must follow publish time and exclude each other."""
    if auto_delete_at is not None and auto_delete_at <= publish_at:
        raise ActivityValidationError("Auto delete time must be after publish time.")
    if auto_archive_at is not None and auto_archive_at <= publish_at:
        raise ActivityValidationError("Auto archive time must be after publish time.")
    if auto_delete_at is not None and auto_archive_at is not None:
        raise ConflictingAutomationError()


def normalize_image_ids(image_ids: Optional[Iterable[str]]) -> list[str]:
    """Deduplicate attachment ids (order kept) and enforce the cap."""
    unique: list[str] = []
    for image_id in image_ids or []:
        cleaned = clean_text(image_id)
        if cleaned and cleaned not in unique:
            unique.append(cleaned)
    if len(unique) > settings.MAX_ACTIVITY_IMAGES:
        raise TooManyImagesError()
    return unique


# ============================================================================
# Poll fields
# ============================================================================


def normalize_poll_options(options: Optional[Iterable[str]]) -> list[str]:
    """Trim options, drop blanks and duplicates; at least two must remain."""
    unique: list[str] = []
    for option in options or []:
        cleaned = clean_text(option)
        if cleaned and cleaned not in unique:
            unique.append(cleaned)
    if len(unique) < 2:
        raise ActivityValidationError("Polls require at least two options.")
    return unique


def normalize_max_selections(value: Any, option_count: int) -> int:
    """Floor and clamp to [1, option_count]; missing means single choice."""
    number = _finite(value)
    requested = math.floor(number) if number is not None else 1
    return max(1, min(requested, option_count))


def validate_poll_close(publish_at: int, closes_at: Optional[int]) -> None:
    if closes_at is not None and closes_at <= publish_at:
        raise ActivityValidationError("Poll close time must be after the publish time.")


# ============================================================================
# Voting fields
# ============================================================================


def normalize_price(value: Any) -> float:
    """Validate a vote price and round it to cents (missing means free)."""
    if value is None:
        return 0.0
    number = _finite(value)
    if number is None or number < 0:
        raise InvalidPriceError()
    try:
        rounded = Decimal(str(number)).quantize(CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation as e:
        raise InvalidPriceError() from e
    return float(rounded)


def normalize_participants(participants: Optional[Iterable[Any]]) -> list[ParticipantSnapshot]:
    """
    Normalize a roster snapshot.

    Entries are deduplicated by user id (first occurrence wins), names are
    trimmed, org labels are coerced onto the org chart and vote balances are
    floored at zero. An empty result is rejected.
    """
    seen: set[str] = set()
    roster: list[ParticipantSnapshot] = []
    for entry in participants or []:
        raw = entry if isinstance(entry, dict) else entry.model_dump()
        user_id = clean_text(raw.get("user_id"))
        if not user_id or user_id in seen:
            continue
        seen.add(user_id)
        group, portfolio = normalize_org_labels(raw.get("group"), raw.get("portfolio"))
        roster.append(
            ParticipantSnapshot(
                user_id=user_id,
                first_name=clean_text(raw.get("first_name")),
                last_name=clean_text(raw.get("last_name")),
                group=group,
                portfolio=portfolio,
                votes=floor_non_negative(raw.get("votes")),
            )
        )
    if not roster:
        raise EmptyRosterError()
    return roster


def normalize_leaderboard_mode(value: Any, fallback: LeaderboardMode = LeaderboardMode.ALL) -> LeaderboardMode:
    """Unknown or missing modes fall back silently instead of failing."""
    try:
        return LeaderboardMode(value)
    except (TypeError, ValueError):
        return LeaderboardMode(fallback)


def normalize_labels(values: Optional[Iterable[str]]) -> list[str]:
    """Trimmed, deduplicated list of org labels."""
    unique: list[str] = []
    for value in values or []:
        cleaned = clean_text(value)
        if cleaned and cleaned not in unique:
            unique.append(cleaned)
    return unique


# ============================================================================
# Whole activity
# ============================================================================


def normalize_activity_fields(
    raw: dict[str, Any],
    leaderboard_fallback: LeaderboardMode = LeaderboardMode.ALL,
) -> dict[str, Any]:
    """
    Normalize a complete field set for one activity.

    ``raw`` must already hold every value that applies (supplied values
    merged over stored ones, and a voting roster resolved). Returns only the
    fields belonging to the activity's kind.

    Raises:
        ActivityValidationError: (or a subclass) on the first invalid field.
    """
    event_type = EventType(raw.get("event_type") or EventType.ANNOUNCEMENT).value
    publish_at = int(raw["publish_at"])
    auto_delete_at = raw.get("auto_delete_at")
    auto_archive_at = raw.get("auto_archive_at")

    fields: dict[str, Any] = {
        "event_type": event_type,
        "title": normalize_title(raw.get("title"), event_type),
        "description": normalize_description(raw.get("description"), event_type),
        "publish_at": publish_at,
    }

    validate_automation(publish_at, auto_delete_at, auto_archive_at)
    fields["auto_delete_at"] = auto_delete_at
    fields["auto_archive_at"] = auto_archive_at

    if event_type == EventType.POLL:
        options = normalize_poll_options(raw.get("poll_options"))
        closes_at = raw.get("poll_closes_at")
        validate_poll_close(publish_at, closes_at)
        fields.update(
            poll_options=options,
            poll_anonymous=bool(raw.get("poll_anonymous")),
            poll_allow_additional_options=bool(raw.get("poll_allow_additional_options")),
            poll_max_selections=normalize_max_selections(raw.get("poll_max_selections"), len(options)),
            poll_closes_at=closes_at,
        )
    elif event_type == EventType.VOTING:
        fields.update(
            voting_participants=normalize_participants(raw.get("voting_participants")),
            voting_add_vote_price=normalize_price(raw.get("voting_add_vote_price")),
            voting_remove_vote_price=normalize_price(raw.get("voting_remove_vote_price")),
            voting_allowed_groups=normalize_labels(raw.get("voting_allowed_groups")),
            voting_allowed_portfolios=normalize_labels(raw.get("voting_allowed_portfolios")),
            voting_allow_ungrouped=bool(raw.get("voting_allow_ungrouped")),
            voting_leaderboard_mode=normalize_leaderboard_mode(
                raw.get("voting_leaderboard_mode"), leaderboard_fallback
            ),
        )

    fields["image_ids"] = normalize_image_ids(raw.get("image_ids"))
    return fields
