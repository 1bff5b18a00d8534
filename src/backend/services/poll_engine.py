"""
Poll Engine

Handles poll views, voting and the per-option voter breakdown:

- Tallies are computed from the poll's vote documents on read
- Anonymous polls only show tallies to admins
- Voters may grow the option list when the poll allows it; the new option
  is only written once the whole vote has validated
- One vote document per voter per poll; re-voting replaces selections
"""

from dataclasses import dataclass
from typing import Iterable, Optional

import structlog

from core.config import settings
from core.exceptions import (
    AdditionalOptionsNotAllowedError,
    ConcurrencyConflictError,
    InvalidOptionError,
    NoSelectionError,
    PollArchivedError,
    PollClosedError,
    PollNotFoundError,
    TooManySelectionsError,
    UnauthorizedError,
)
from core.security import Principal
from models.documents import ActivityStatus, PollActivity, PollVoteDocument
from repositories.provider import ActivityRepositoryProtocol, PollVoteRepositoryProtocol
from schemas.poll import (
    OptionBreakdown,
    PollBreakdown,
    PollOptionResult,
    PollView,
    PollVoteResponse,
    VoterEntry,
)
from services.normalization import clean_text

logger = structlog.get_logger(__name__)


@dataclass
class VotePlan:
    """Validated outcome of a vote request, before anything is written."""

    selections: list[str]
    options: list[str]
    added_option: Optional[str] = None


def is_poll_closed(poll: PollActivity, now: int) -> bool:
    return poll.poll_closes_at is not None and poll.poll_closes_at <= now


def plan_vote(
    poll: PollActivity,
    selections: Iterable[str],
    new_option: Optional[str],
    now: int,
) -> VotePlan:
    """
    Validate a vote against a poll.

    A supplied new option matching an existing one case-insensitively
    resolves to the existing spelling; otherwise it is appended to the
    option list and selected.

    Raises:
        PollClosedError, PollArchivedError, AdditionalOptionsNotAllowedError,
        NoSelectionError, TooManySelectionsError, InvalidOptionError
    """
    if is_poll_closed(poll, now):
        raise PollClosedError()
    if poll.status == ActivityStatus.ARCHIVED:
        raise PollArchivedError()

    options = list(poll.poll_options)
    chosen = [clean_text(selection) for selection in selections]
    added_option = None

    candidate = clean_text(new_option)
    if candidate:
        if not poll.poll_allow_additional_options:
            raise AdditionalOptionsNotAllowedError()
        match = next((option for option in options if option.casefold() == candidate.casefold()), None)
        if match is None:
            options.append(candidate)
            added_option = match = candidate
        chosen.append(match)

    unique: list[str] = []
    for selection in chosen:
        if selection and selection not in unique:
            unique.append(selection)

    if not unique:
        raise NoSelectionError()

    limit = poll.poll_max_selections
    if len(unique) > limit:
        raise TooManySelectionsError(f"You can select up to {limit} option{'' if limit == 1 else 's'}.")

    if any(selection not in options for selection in unique):
        raise InvalidOptionError()

    return VotePlan(selections=unique, options=options, added_option=added_option)


class PollEngine:
    """Poll voting and results."""

    def __init__(
        self,
        activities: ActivityRepositoryProtocol,
        poll_votes: PollVoteRepositoryProtocol,
    ):
        self.activities = activities
        self.poll_votes = poll_votes

    async def _load_poll(self, activity_id: str) -> PollActivity:
        activity = await self.activities.get_by_id(activity_id)
        if not isinstance(activity, PollActivity):
            raise PollNotFoundError()
        return activity

    async def get_poll(self, activity_id: str, principal: Optional[Principal], now: int) -> PollView:
        """
        Get a poll with tallies and the caller's own selections.

        total_votes is the number of selections across all voters, not the
        number of voters. For anonymous polls tallies are only returned to
        admins.
        """
        poll = await self._load_poll(activity_id)
        votes = await self.poll_votes.list_for_activity(poll.id)

        counts = {option: 0 for option in poll.poll_options}
        total_votes = 0
        current_user_selections: list[str] = []
        for vote in votes:
            total_votes += len(vote.selections)
            for selection in vote.selections:
                if selection in counts:
                    counts[selection] += 1
            if principal is not None and vote.user_id == principal.subject_id:
                current_user_selections = list(vote.selections)

        results_visible = not poll.poll_anonymous or (principal is not None and principal.is_admin)

        return PollView(
            id=poll.id,
            question=poll.title,
            description=poll.description,
            options=[
                PollOptionResult(value=option, votes=counts[option] if results_visible else None)
                for option in poll.poll_options
            ],
            total_votes=total_votes if results_visible else None,
            results_visible=results_visible,
            anonymous=poll.poll_anonymous,
            allow_additional_options=poll.poll_allow_additional_options,
            max_selections=poll.poll_max_selections,
            closes_at=poll.poll_closes_at,
            is_closed=is_poll_closed(poll, now),
            is_archived=poll.status == ActivityStatus.ARCHIVED,
            image_ids=poll.image_ids,
            current_user_selections=current_user_selections,
        )

    async def vote(
        self,
        activity_id: str,
        selections: Iterable[str],
        new_option: Optional[str],
        principal: Optional[Principal],
        now: int,
    ) -> PollVoteResponse:
        """
        Cast or replace the caller's vote.

        Raises:
            UnauthorizedError: Without a principal
            PollNotFoundError: If the activity is missing or not a poll
            ConcurrencyConflictError: If the option list kept changing underneath
            (and every rejection listed on ``plan_vote``)
        """
        if principal is None:
            raise UnauthorizedError()

        selections = list(selections)
        for _ in range(settings.OPTIMISTIC_WRITE_RETRIES):
            poll = await self._load_poll(activity_id)
            plan = plan_vote(poll, selections, new_option, now)
            if plan.added_option is None:
                break
            try:
                await self.activities.replace(poll.model_copy(update={"poll_options": plan.options}))
            except ConcurrencyConflictError:
                continue
            logger.info("poll_option_added", activity_id=poll.id, option=plan.added_option)
            break
        else:
            raise ConcurrencyConflictError()

        existing = await self.poll_votes.get_for_user(poll.id, principal.subject_id)
        await self.poll_votes.upsert(
            PollVoteDocument(
                announcement_id=poll.id,
                user_id=principal.subject_id,
                user_name=principal.display_name,
                selections=plan.selections,
                created_at=existing.created_at if existing else now,
                updated_at=now,
            )
        )
        logger.info(
            "poll_vote_recorded",
            activity_id=poll.id,
            selections=len(plan.selections),
            revote=existing is not None,
        )

        return PollVoteResponse(
            announcement_id=poll.id,
            selections=plan.selections,
            options=plan.options,
            added_option=plan.added_option,
        )

    async def voter_breakdown(self, activity_id: str, principal: Optional[Principal]) -> PollBreakdown:
        """
        List who chose each option.

        Covers every declared option plus options that only survive in votes
        (removed from the poll after being chosen).

        Raises:
            UnauthorizedError: Without a principal
            PollNotFoundError: If the activity is missing or not a poll
        """
        if principal is None:
            raise UnauthorizedError()

        poll = await self._load_poll(activity_id)
        votes = await self.poll_votes.list_for_activity(poll.id)

        voters: dict[str, list[VoterEntry]] = {option: [] for option in poll.poll_options}
        for vote in votes:
            for selection in vote.selections:
                voters.setdefault(selection, []).append(VoterEntry(user_id=vote.user_id, user_name=vote.user_name))

        return PollBreakdown(
            id=poll.id,
            question=poll.title,
            total_voters=len(votes),
            total_votes=sum(len(vote.selections) for vote in votes),
            options=[
                OptionBreakdown(
                    option=option,
                    vote_count=len(entries),
                    voters=sorted(entries, key=lambda entry: entry.user_name.casefold()),
                )
                for option, entries in voters.items()
            ],
        )
