"""
Vote Ledger Service

Maintains participants' vote-credit balances in a voting event:

- A batch of add/remove adjustments is validated as a whole before any
  write; one bad adjustment rejects the batch
- The roster is written in a single ETag-guarded replace, retried on
  conflict against a fresh read so concurrent batches never overdraw
- Prices are informational: costs are reported, no money moves
"""

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

import structlog

from core.config import settings
from core.exceptions import (
    ConcurrencyConflictError,
    InsufficientVotesError,
    ParticipantNotFoundError,
    UnauthorizedError,
    VotingEventNotFoundError,
)
from core.security import Principal
from models.documents import LeaderboardMode, ParticipantSnapshot, VotingActivity
from models.org import GROUP_PORTFOLIOS
from repositories.provider import ActivityRepositoryProtocol
from schemas.activity import ParticipantResponse
from schemas.voting import AdjustmentResult, Leaderboard, LeaderboardBoard, LeaderboardEntry, VoteAdjustment
from services.normalization import CENTS, floor_non_negative

logger = structlog.get_logger(__name__)

UNGROUPED_LABEL = "Ungrouped"


@dataclass
class AdjustmentPlan:
    """Validated batch, ready to be written."""

    participants: list[ParticipantSnapshot]
    added: int = 0
    removed: int = 0
    touched: list[str] = field(default_factory=list)  # users whose balance moves

    @property
    def changed(self) -> bool:
        return bool(self.touched)


def price_for(units: int, unit_price: float) -> float:
    """Cost of ``units`` votes at ``unit_price``, rounded to cents."""
    total = Decimal(str(unit_price)) * units
    return float(total.quantize(CENTS, rounding=ROUND_HALF_UP))


def plan_adjustments(activity: VotingActivity, adjustments: Iterable[VoteAdjustment]) -> AdjustmentPlan:
    """
    Validate a batch of adjustments against the current roster.

    Amounts are floored to non-negative integers and adjustments for the same
    user are combined. Removals are checked against the balance before the
    batch.

    Raises:
        ParticipantNotFoundError: If a user is not in the roster
        InsufficientVotesError: If a removal exceeds the balance
    """
    requested: dict[str, list[int]] = {}
    for adjustment in adjustments:
        add = floor_non_negative(adjustment.add)
        remove = floor_non_negative(adjustment.remove)
        if add == 0 and remove == 0:
            continue
        totals = requested.setdefault(adjustment.user_id.strip(), [0, 0])
        totals[0] += add
        totals[1] += remove

    roster = {participant.user_id: participant for participant in activity.voting_participants}
    for user_id, (add, remove) in requested.items():
        participant = roster.get(user_id)
        if participant is None:
            raise ParticipantNotFoundError(f"Participant {user_id} is not part of this voting event.")
        if remove > participant.votes:
            name = f"{participant.first_name} {participant.last_name}".strip() or user_id
            raise InsufficientVotesError(
                f"{name} only has {participant.votes} vote{'' if participant.votes == 1 else 's'} to remove."
            )

    participants = []
    touched = []
    for participant in activity.voting_participants:
        add, remove = requested.get(participant.user_id, (0, 0))
        if add != remove:
            touched.append(participant.user_id)
            participant = participant.model_copy(update={"votes": participant.votes + add - remove})
        participants.append(participant)

    return AdjustmentPlan(
        participants=participants,
        added=sum(add for add, _ in requested.values()),
        removed=sum(remove for _, remove in requested.values()),
        touched=touched,
    )


def _rank(participants: list[ParticipantSnapshot]) -> list[LeaderboardEntry]:
    """Order by votes (desc), then name; ties share a rank."""
    ordered = sorted(
        participants,
        key=lambda p: (-p.votes, p.last_name.casefold(), p.first_name.casefold(), p.user_id),
    )
    entries = []
    rank = 0
    previous_votes = None
    for position, participant in enumerate(ordered, start=1):
        if participant.votes != previous_votes:
            rank = position
            previous_votes = participant.votes
        entries.append(LeaderboardEntry(rank=rank, **participant.model_dump()))
    return entries


def build_leaderboard(activity: VotingActivity) -> Leaderboard:
    """Rank a voting event's participants according to its leaderboard mode."""
    mode = LeaderboardMode(activity.voting_leaderboard_mode)
    participants = activity.voting_participants
    boards: list[LeaderboardBoard] = []

    if mode == LeaderboardMode.ALL:
        boards.append(LeaderboardBoard(label="All participants", entries=_rank(participants)))
    else:
        known_groups = list(GROUP_PORTFOLIOS)
        for group in known_groups:
            members = [p for p in participants if p.group == group]
            if not members:
                continue
            if mode == LeaderboardMode.GROUP:
                boards.append(LeaderboardBoard(label=group, group=group, entries=_rank(members)))
                continue
            for portfolio in GROUP_PORTFOLIOS[group]:
                in_portfolio = [p for p in members if p.portfolio == portfolio]
                if in_portfolio:
                    boards.append(
                        LeaderboardBoard(
                            label=f"{group} / {portfolio}",
                            group=group,
                            portfolio=portfolio,
                            entries=_rank(in_portfolio),
                        )
                    )
            without_portfolio = [p for p in members if p.portfolio is None]
            if without_portfolio:
                boards.append(LeaderboardBoard(label=group, group=group, entries=_rank(without_portfolio)))

        ungrouped = [p for p in participants if p.group not in GROUP_PORTFOLIOS]
        if ungrouped:
            boards.append(LeaderboardBoard(label=UNGROUPED_LABEL, entries=_rank(ungrouped)))

    return Leaderboard(id=activity.id, title=activity.title, mode=mode, boards=boards)


class VotingLedger:
    """Vote-credit adjustments and leaderboards for voting events."""

    def __init__(self, activities: ActivityRepositoryProtocol):
        self.activities = activities

    async def _load_event(self, activity_id: str) -> VotingActivity:
        activity = await self.activities.get_by_id(activity_id)
        if not isinstance(activity, VotingActivity):
            raise VotingEventNotFoundError()
        return activity

    async def adjust_votes(
        self,
        activity_id: str,
        adjustments: list[VoteAdjustment],
        principal: Optional[Principal],
        now: int,
    ) -> AdjustmentResult:
        """
        Apply a batch of vote adjustments all-or-nothing.

        Returns ``changed=False`` without writing when no participant's
        balance would move.

        Raises:
            UnauthorizedError: Without a principal
            VotingEventNotFoundError: If the activity is missing or not a voting event
            ParticipantNotFoundError, InsufficientVotesError: On an invalid adjustment
            ConcurrencyConflictError: If the roster kept changing underneath
        """
        if principal is None:
            raise UnauthorizedError()

        for attempt in range(settings.OPTIMISTIC_WRITE_RETRIES):
            activity = await self._load_event(activity_id)
            plan = plan_adjustments(activity, adjustments)

            if not plan.changed:
                return AdjustmentResult(
                    changed=False,
                    participants=[ParticipantResponse(**p.model_dump()) for p in activity.voting_participants],
                )

            try:
                saved = await self.activities.replace(
                    activity.model_copy(
                        update={
                            "voting_participants": plan.participants,
                            "updated_at": now,
                            "updated_by": principal.display_name,
                        }
                    )
                )
            except ConcurrencyConflictError:
                logger.info("vote_adjustment_retry", activity_id=activity_id, attempt=attempt + 1)
                continue

            add_cost = price_for(plan.added, activity.voting_add_vote_price)
            remove_cost = price_for(plan.removed, activity.voting_remove_vote_price)
            logger.info(
                "votes_adjusted",
                activity_id=activity_id,
                participants=len(plan.touched),
                added=plan.added,
                removed=plan.removed,
                adjusted_by=principal.display_name,
            )
            return AdjustmentResult(
                changed=True,
                participants=[ParticipantResponse(**p.model_dump()) for p in saved.voting_participants],
                add_cost=add_cost,
                remove_cost=remove_cost,
                total_price=float((Decimal(str(add_cost)) + Decimal(str(remove_cost))).quantize(CENTS)),
            )

        raise ConcurrencyConflictError()

    async def leaderboard(self, activity_id: str) -> Leaderboard:
        """
        Get the ranked leaderboard for a voting event.

        Raises:
            VotingEventNotFoundError: If the activity is missing or not a voting event
        """
        return build_leaderboard(await self._load_event(activity_id))
