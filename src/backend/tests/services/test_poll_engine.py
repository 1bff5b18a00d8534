"""
Tests for the poll engine: voting rules, tallies, anonymity and breakdowns.
"""

import pytest

from core.exceptions import (
    AdditionalOptionsNotAllowedError,
    InvalidOptionError,
    NoSelectionError,
    PollArchivedError,
    PollClosedError,
    PollNotFoundError,
    TooManySelectionsError,
    UnauthorizedError,
)
from core.security import Principal
from fakes import HOUR_MS
from schemas.activity import ActivityCreate
from services.lifecycle import ActivityLifecycleManager
from services.poll_engine import PollEngine


@pytest.fixture
def manager(activity_repo, vote_repo) -> ActivityLifecycleManager:
    return ActivityLifecycleManager(activity_repo, vote_repo)


@pytest.fixture
def engine(activity_repo, vote_repo) -> PollEngine:
    return PollEngine(activity_repo, vote_repo)


@pytest.fixture
def voter_a() -> Principal:
    return Principal(subject_id="voter-a", name="Avery")


@pytest.fixture
def voter_b() -> Principal:
    return Principal(subject_id="voter-b", name="blake")


async def create_poll(manager, admin, now, **overrides):
    data = {"title": "Lunch?", "event_type": "poll", "poll_options": ["Pizza", "Tacos"]}
    data.update(overrides)
    return await manager.create(ActivityCreate(**data), admin, now)


@pytest.mark.unit
class TestVoting:
    """Casting and replacing votes."""

    async def test_additional_option_scenario(self, manager, engine, activity_repo, admin, voter_a, voter_b, now):
        """Test voters can grow the option list and re-vote onto a new option."""
        poll = await create_poll(manager, admin, now, poll_allow_additional_options=True)

        first = await engine.vote(poll.id, ["Pizza"], None, voter_a, now)
        assert first.selections == ["Pizza"]
        assert first.options == ["Pizza", "Tacos"]

        second = await engine.vote(poll.id, [], "Sushi", voter_b, now)
        assert second.selections == ["Sushi"]
        assert second.added_option == "Sushi"
        assert activity_repo.items[poll.id]["poll_options"] == ["Pizza", "Tacos", "Sushi"]

        await engine.vote(poll.id, ["Sushi"], None, voter_a, now + 1)

        view = await engine.get_poll(poll.id, voter_a, now + 1)
        assert view.total_votes == 2
        assert {o.value: o.votes for o in view.options} == {"Pizza": 0, "Tacos": 0, "Sushi": 2}
        assert view.current_user_selections == ["Sushi"]

        breakdown = await engine.voter_breakdown(poll.id, admin)
        assert breakdown.total_voters == 2

    async def test_new_option_matches_existing_case_insensitively(self, manager, engine, activity_repo, admin, voter_a, now):
        """Test a new option equal to an existing one selects the existing spelling."""
        poll = await create_poll(manager, admin, now, poll_allow_additional_options=True)
        writes = activity_repo.writes

        result = await engine.vote(poll.id, [], "  pizza ", voter_a, now)

        assert result.selections == ["Pizza"]
        assert result.added_option is None
        assert activity_repo.writes == writes

    async def test_revote_keeps_one_document(self, manager, engine, vote_repo, admin, voter_a, now):
        """Test re-voting replaces selections instead of adding a document."""
        poll = await create_poll(manager, admin, now)

        await engine.vote(poll.id, ["Pizza"], None, voter_a, now)
        await engine.vote(poll.id, ["Tacos"], None, voter_a, now + 5)

        votes = await vote_repo.list_for_activity(poll.id)
        assert len(votes) == 1
        assert votes[0].selections == ["Tacos"]
        assert votes[0].created_at == now
        assert votes[0].updated_at == now + 5

    async def test_selection_limit(self, manager, engine, admin, voter_a, now):
        """Test selections beyond the limit are rejected with the limit in the message."""
        poll = await create_poll(manager, admin, now, poll_options=["Pizza", "Tacos", "Sushi"], poll_max_selections=2)

        with pytest.raises(TooManySelectionsError, match="up to 2 options"):
            await engine.vote(poll.id, ["Pizza", "Tacos", "Sushi"], None, voter_a, now)

        result = await engine.vote(poll.id, ["Pizza", "Tacos", "Pizza"], None, voter_a, now)
        assert result.selections == ["Pizza", "Tacos"]

    async def test_single_choice_message(self, manager, engine, admin, voter_a, now):
        """Test the singular wording for single-choice polls."""
        poll = await create_poll(manager, admin, now)

        with pytest.raises(TooManySelectionsError, match="up to 1 option\\.$"):
            await engine.vote(poll.id, ["Pizza", "Tacos"], None, voter_a, now)

    async def test_rejections(self, manager, engine, admin, voter_a, now):
        """Test empty, unknown and unapproved new options are rejected."""
        poll = await create_poll(manager, admin, now)

        with pytest.raises(NoSelectionError):
            await engine.vote(poll.id, ["  "], None, voter_a, now)
        with pytest.raises(InvalidOptionError):
            await engine.vote(poll.id, ["Burgers"], None, voter_a, now)
        with pytest.raises(AdditionalOptionsNotAllowedError):
            await engine.vote(poll.id, [], "Burgers", voter_a, now)

    async def test_rejected_vote_does_not_add_option(self, manager, engine, activity_repo, vote_repo, admin, voter_a, now):
        """Test a new option is not kept when the rest of the vote is invalid."""
        poll = await create_poll(manager, admin, now, poll_allow_additional_options=True)

        with pytest.raises(TooManySelectionsError):
            await engine.vote(poll.id, ["Pizza"], "Sushi", voter_a, now)

        assert activity_repo.items[poll.id]["poll_options"] == ["Pizza", "Tacos"]
        assert vote_repo.items == {}

    async def test_closed_poll(self, manager, engine, admin, voter_a, now):
        """Test votes at or after the close time are rejected."""
        poll = await create_poll(manager, admin, now, poll_closes_at=now + HOUR_MS)

        await engine.vote(poll.id, ["Pizza"], None, voter_a, now + HOUR_MS - 1)
        with pytest.raises(PollClosedError):
            await engine.vote(poll.id, ["Pizza"], None, voter_a, now + HOUR_MS)

        view = await engine.get_poll(poll.id, voter_a, now + HOUR_MS)
        assert view.is_closed is True

    async def test_archived_poll(self, manager, engine, admin, voter_a, now):
        """Test archived polls reject votes."""
        poll = await create_poll(manager, admin, now)
        await manager.archive(poll.id, admin, now)

        with pytest.raises(PollArchivedError):
            await engine.vote(poll.id, ["Pizza"], None, voter_a, now)

    async def test_requires_principal(self, manager, engine, admin, now):
        """Test anonymous votes are rejected."""
        poll = await create_poll(manager, admin, now)

        with pytest.raises(UnauthorizedError):
            await engine.vote(poll.id, ["Pizza"], None, None, now)

    async def test_not_a_poll(self, manager, engine, admin, voter_a, now):
        """Test voting on an announcement or unknown id fails."""
        announcement = await manager.create(ActivityCreate(title="News", description="Body"), admin, now)

        with pytest.raises(PollNotFoundError):
            await engine.vote(announcement.id, ["Pizza"], None, voter_a, now)
        with pytest.raises(PollNotFoundError):
            await engine.get_poll("missing", voter_a, now)

    async def test_option_growth_retries_on_conflict(self, manager, engine, activity_repo, admin, voter_a, now):
        """Test a concurrently added option is preserved when adding another."""
        poll = await create_poll(manager, admin, now, poll_allow_additional_options=True)
        activity_repo.interference.append(lambda doc: doc["poll_options"].append("Curry"))

        result = await engine.vote(poll.id, [], "Sushi", voter_a, now)

        assert result.options == ["Pizza", "Tacos", "Curry", "Sushi"]
        assert activity_repo.items[poll.id]["poll_options"] == ["Pizza", "Tacos", "Curry", "Sushi"]


@pytest.mark.unit
class TestResults:
    """Tallies, anonymity and breakdowns."""

    async def test_total_counts_selections(self, manager, engine, admin, voter_a, voter_b, now):
        """Test total votes is the number of selections, not voters."""
        poll = await create_poll(manager, admin, now, poll_options=["Pizza", "Tacos", "Sushi"], poll_max_selections=3)
        await engine.vote(poll.id, ["Pizza", "Tacos"], None, voter_a, now)
        await engine.vote(poll.id, ["Tacos"], None, voter_b, now)

        view = await engine.get_poll(poll.id, None, now)

        assert view.total_votes == 3
        assert [(o.value, o.votes) for o in view.options] == [("Pizza", 1), ("Tacos", 2), ("Sushi", 0)]
        assert view.current_user_selections == []

    async def test_anonymous_poll_hides_tallies(self, manager, engine, admin, voter_a, now):
        """Test anonymous tallies are only visible to admins."""
        poll = await create_poll(manager, admin, now, poll_anonymous=True)
        await engine.vote(poll.id, ["Pizza"], None, voter_a, now)

        member_view = await engine.get_poll(poll.id, voter_a, now)
        assert member_view.results_visible is False
        assert member_view.total_votes is None
        assert all(o.votes is None for o in member_view.options)
        assert member_view.current_user_selections == ["Pizza"]

        admin_view = await engine.get_poll(poll.id, admin, now)
        assert admin_view.results_visible is True
        assert admin_view.total_votes == 1

    async def test_breakdown_lists_voters_by_name(self, manager, engine, vote_repo, admin, voter_a, voter_b, now):
        """Test the breakdown lists voters per option, sorted by name."""
        poll = await create_poll(manager, admin, now)
        await engine.vote(poll.id, ["Pizza"], None, voter_b, now)
        await engine.vote(poll.id, ["Pizza"], None, voter_a, now)

        breakdown = await engine.voter_breakdown(poll.id, admin)

        pizza = next(o for o in breakdown.options if o.option == "Pizza")
        assert pizza.vote_count == 2
        assert [v.user_name for v in pizza.voters] == ["Avery", "blake"]
        tacos = next(o for o in breakdown.options if o.option == "Tacos")
        assert tacos.vote_count == 0

    async def test_breakdown_totals_selections(self, manager, engine, admin, voter_a, voter_b, now):
        """Test the breakdown reports voters and the sum of their selections."""
        poll = await create_poll(manager, admin, now, poll_options=["Pizza", "Tacos", "Sushi"], poll_max_selections=3)
        await engine.vote(poll.id, ["Pizza", "Tacos"], None, voter_a, now)
        await engine.vote(poll.id, ["Tacos"], None, voter_b, now)

        breakdown = await engine.voter_breakdown(poll.id, admin)

        assert (breakdown.total_voters, breakdown.total_votes) == (2, 3)

    async def test_breakdown_includes_removed_options(self, manager, engine, activity_repo, admin, voter_a, now):
        """Test options removed after being voted for still appear in the breakdown."""
        poll = await create_poll(manager, admin, now, poll_options=["Pizza", "Tacos", "Sushi"])
        await engine.vote(poll.id, ["Sushi"], None, voter_a, now)
        activity_repo.items[poll.id]["poll_options"] = ["Pizza", "Tacos"]

        breakdown = await engine.voter_breakdown(poll.id, admin)
        view = await engine.get_poll(poll.id, admin, now)

        assert [o.option for o in breakdown.options] == ["Pizza", "Tacos", "Sushi"]
        assert view.total_votes == 1
        assert [o.value for o in view.options] == ["Pizza", "Tacos"]

    async def test_breakdown_requires_principal(self, manager, engine, admin, now):
        """Test anonymous callers cannot see the breakdown."""
        poll = await create_poll(manager, admin, now)

        with pytest.raises(UnauthorizedError):
            await engine.voter_breakdown(poll.id, None)
