"""
Tests for poll endpoints.
"""

import pytest
from httpx import AsyncClient

from fakes import create_identity_token


async def create_poll(client: AsyncClient, headers: dict, **fields) -> dict:
    payload = {
        "title": "Lunch?",
        "event_type": "poll",
        "poll_options": ["Pizza", "Tacos"],
        "poll_allow_additional_options": True,
    }
    payload.update(fields)
    response = await client.post("/api/v1/activities", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.unit
class TestPollEndpoints:
    """Voting and results over HTTP."""

    async def test_vote_requires_authentication(self, client: AsyncClient, admin_headers: dict) -> None:
        """Test anonymous votes are rejected."""
        poll = await create_poll(client, admin_headers)

        response = await client.post(f"/api/v1/polls/{poll['id']}/vote", json={"selections": ["Pizza"]})
        assert response.status_code == 401

    async def test_invalid_token_rejected(self, client: AsyncClient, admin_headers: dict) -> None:
        """Test a garbage bearer token is rejected."""
        poll = await create_poll(client, admin_headers)

        response = await client.post(
            f"/api/v1/polls/{poll['id']}/vote",
            json={"selections": ["Pizza"]},
            headers={"Authorization": "Bearer not-a-token"},
        )
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid or expired token"

    async def test_vote_and_view(self, client: AsyncClient, admin_headers: dict, member_headers: dict) -> None:
        """Test a vote with a new option shows up in the results."""
        poll = await create_poll(client, admin_headers)

        voted = await client.post(
            f"/api/v1/polls/{poll['id']}/vote", json={"new_option": "Sushi"}, headers=member_headers
        )
        assert voted.status_code == 200
        assert voted.json()["options"] == ["Pizza", "Tacos", "Sushi"]

        view = (await client.get(f"/api/v1/polls/{poll['id']}", headers=member_headers)).json()
        assert view["question"] == "Lunch?"
        assert view["total_votes"] == 1
        assert view["current_user_selections"] == ["Sushi"]
        assert {o["value"]: o["votes"] for o in view["options"]} == {"Pizza": 0, "Tacos": 0, "Sushi": 1}

    async def test_vote_errors_mapped(self, client: AsyncClient, admin_headers: dict, member_headers: dict) -> None:
        """Test vote rejections return their message and kind."""
        poll = await create_poll(client, admin_headers)

        too_many = await client.post(
            f"/api/v1/polls/{poll['id']}/vote", json={"selections": ["Pizza", "Tacos"]}, headers=member_headers
        )
        assert too_many.status_code == 400
        assert too_many.json() == {"detail": "You can select up to 1 option.", "error": "TooManySelections"}

        unknown = await client.post("/api/v1/polls/missing/vote", json={"selections": ["Pizza"]}, headers=member_headers)
        assert unknown.status_code == 404
        assert unknown.json()["detail"] == "Poll not found."

    async def test_anonymous_poll_results(self, client: AsyncClient, admin_headers: dict, member_headers: dict) -> None:
        """Test anonymous poll tallies are hidden from members."""
        poll = await create_poll(client, admin_headers, poll_anonymous=True)
        await client.post(f"/api/v1/polls/{poll['id']}/vote", json={"selections": ["Pizza"]}, headers=member_headers)

        public = (await client.get(f"/api/v1/polls/{poll['id']}")).json()
        assert public["results_visible"] is False
        assert public["total_votes"] is None

        admin_view = (await client.get(f"/api/v1/polls/{poll['id']}", headers=admin_headers)).json()
        assert admin_view["total_votes"] == 1

    async def test_breakdown_admin_only(self, client: AsyncClient, admin_headers: dict, member_headers: dict) -> None:
        """Test only admins see who voted for what."""
        poll = await create_poll(client, admin_headers)
        other = {"Authorization": f"Bearer {create_identity_token('member-2', name='Casey')}"}
        await client.post(f"/api/v1/polls/{poll['id']}/vote", json={"selections": ["Pizza"]}, headers=member_headers)
        await client.post(f"/api/v1/polls/{poll['id']}/vote", json={"selections": ["Pizza"]}, headers=other)

        forbidden = await client.get(f"/api/v1/polls/{poll['id']}/breakdown", headers=member_headers)
        assert forbidden.status_code == 403

        breakdown = (await client.get(f"/api/v1/polls/{poll['id']}/breakdown", headers=admin_headers)).json()
        pizza = breakdown["options"][0]
        assert (breakdown["total_voters"], breakdown["total_votes"]) == (2, 2)
        assert [v["user_name"] for v in pizza["voters"]] == ["Casey", "Morgan Member"]

    async def test_delete_removes_votes(
        self, client: AsyncClient, admin_headers: dict, member_headers: dict, vote_repo
    ) -> None:
        """Test deleting a poll deletes its votes."""
        poll = await create_poll(client, admin_headers)
        await client.post(f"/api/v1/polls/{poll['id']}/vote", json={"selections": ["Pizza"]}, headers=member_headers)
        assert len(vote_repo.items) == 1

        await client.delete(f"/api/v1/activities/{poll['id']}", headers=admin_headers)

        assert vote_repo.items == {}
