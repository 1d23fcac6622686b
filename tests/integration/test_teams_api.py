"""
Integration tests for teams API endpoints.

Tests /teams/* endpoints including team creation, membership and the roster.
"""

import pytest

from kolla.auth import create_access_token

from tests.utils import TEST_JWT_SECRET, auth_headers, create_test_user


@pytest.mark.integration
@pytest.mark.asyncio
class TestTeams:
    """Test team creation and listing."""

    async def test_create_team(self, async_client, coach_token):
        """Test creating a new team."""
        response = await async_client.post(
            "/teams",
            headers=auth_headers(coach_token),
            json={"name": "New Team"}
        )

        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "New Team"
        assert data["role"] == "coach"
        assert data["member_count"] == 1
        assert "id" in data
        assert "created_at" in data

    async def test_list_teams(self, async_client, player_token, test_team):
        """Test listing teams shows the caller's role."""
        response = await async_client.get("/teams", headers=auth_headers(player_token))

        assert response.status_code == 200
        data = response.json()
        assert [team["id"] for team in data] == [test_team["id"]]
        assert data[0]["role"] == "player"
        assert data[0]["member_count"] == 2

    async def test_get_team(self, async_client, coach_token, test_team):
        response = await async_client.get(f"/teams/{test_team['id']}", headers=auth_headers(coach_token))

        assert response.status_code == 200
        assert response.json()["name"] == "Falcons"

    async def test_first_request_provisions_user(self, async_client):
        """Test an unseen token subject gets a user row on first use."""
        token = create_access_token("new-subject", TEST_JWT_SECRET, email="new@example.com")

        response = await async_client.get("/teams", headers=auth_headers(token))

        assert response.status_code == 200
        assert response.json() == []


@pytest.mark.integration
@pytest.mark.asyncio
class TestMembership:
    """Test adding and removing team members."""

    async def test_list_members(self, async_client, player_token, test_team, test_coach, test_player):
        response = await async_client.get(f"/teams/{test_team['id']}/members", headers=auth_headers(player_token))

        assert response.status_code == 200
        members = {member["user_id"]: member for member in response.json()}
        assert members[test_coach["id"]]["role"] == "coach"
        assert members[test_player["id"]]["role"] == "player"
        assert members[test_coach["id"]]["display_name"] == "Coach Carter"

    async def test_invite_by_email(self, async_client, coach_token, test_team, test_outsider):
        response = await async_client.post(
            f"/teams/{test_team['id']}/members/invite",
            headers=auth_headers(coach_token),
            json={"email": "OUTSIDER@example.com"}
        )

        assert response.status_code == 201
        data = response.json()
        assert data["user_id"] == test_outsider["id"]
        assert data["role"] == "player"

    async def test_invite_existing_member(self, async_client, coach_token, test_team, test_player):
        response = await async_client.post(
            f"/teams/{test_team['id']}/members/invite",
            headers=auth_headers(coach_token),
            json={"email": "player@example.com"}
        )

        assert response.status_code == 409

    async def test_invite_unknown_email(self, async_client, coach_token, test_team):
        response = await async_client.post(
            f"/teams/{test_team['id']}/members/invite",
            headers=auth_headers(coach_token),
            json={"email": "nobody@example.com"}
        )

        assert response.status_code == 404
        assert response.json()["detail"] == "No user with that email"

    async def test_add_members_by_id(self, async_client, engine, coach_token, test_team, test_player):
        assistant = await create_test_user(engine, "assistant-1", email="assistant@example.com")

        response = await async_client.post(
            f"/teams/{test_team['id']}/members",
            headers=auth_headers(coach_token),
            json={"user_ids": [assistant["id"], test_player["id"]], "role": "coach"}
        )

        assert response.status_code == 201
        roles = {member["user_id"]: member["role"] for member in response.json()}
        assert roles[assistant["id"]] == "coach"
        # Existing members keep their role
        assert roles[test_player["id"]] == "player"

    async def test_add_unknown_users(self, async_client, coach_token, test_team):
        response = await async_client.post(
            f"/teams/{test_team['id']}/members",
            headers=auth_headers(coach_token),
            json={"user_ids": [9999]}
        )

        assert response.status_code == 404

    async def test_remove_player(self, async_client, coach_token, player_token, test_team, test_player):
        headers = auth_headers(coach_token)
        members = (await async_client.get(f"/teams/{test_team['id']}/members", headers=headers)).json()
        membership_id = next(m["id"] for m in members if m["user_id"] == test_player["id"])

        response = await async_client.delete(f"/teams/{test_team['id']}/members/{membership_id}", headers=headers)

        assert response.status_code == 204
        response = await async_client.get(f"/teams/{test_team['id']}", headers=auth_headers(player_token))
        assert response.status_code == 403

    async def test_cannot_remove_last_coach(self, async_client, coach_token, test_team, test_coach):
        headers = auth_headers(coach_token)
        members = (await async_client.get(f"/teams/{test_team['id']}/members", headers=headers)).json()
        membership_id = next(m["id"] for m in members if m["user_id"] == test_coach["id"])

        response = await async_client.delete(f"/teams/{test_team['id']}/members/{membership_id}", headers=headers)

        assert response.status_code == 400
        assert response.json()["detail"] == "Cannot remove the last coach"


@pytest.mark.integration
@pytest.mark.asyncio
class TestRoster:
    """Test roster players."""

    async def test_create_and_list(self, async_client, coach_token, test_team, test_roster_player):
        headers = auth_headers(coach_token)
        response = await async_client.post(
            f"/teams/{test_team['id']}/players",
            headers=headers,
            json={"name": "Avery", "number": 4}
        )
        assert response.status_code == 201

        await async_client.post(f"/teams/{test_team['id']}/players", headers=headers, json={"name": "Blake"})

        roster = (await async_client.get(f"/teams/{test_team['id']}/players", headers=headers)).json()
        assert [player["name"] for player in roster] == ["Avery", "Jordan", "Blake"]

    async def test_update(self, async_client, coach_token, test_team, test_roster_player):
        response = await async_client.patch(
            f"/teams/{test_team['id']}/players/{test_roster_player['id']}",
            headers=auth_headers(coach_token),
            json={"number": 32}
        )

        assert response.status_code == 200
        assert response.json()["number"] == 32
        assert response.json()["name"] == "Jordan"

    async def test_delete(self, async_client, coach_token, test_team, test_roster_player):
        url = f"/teams/{test_team['id']}/players/{test_roster_player['id']}"

        assert (await async_client.delete(url, headers=auth_headers(coach_token))).status_code == 204
        assert (await async_client.delete(url, headers=auth_headers(coach_token))).status_code == 404
