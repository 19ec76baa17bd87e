"""Tests for the organizer game endpoints and the reveal endpoint.

Games are created through the verification flow, as a real organizer would.
"""

import re
import uuid

import pytest
from httpx import AsyncClient

from tests.conftest import TEST_ORGANIZER_EMAIL

_CODE_RE = re.compile(r"code is: (\d{6})")
_REVEAL_RE = re.compile(r"/reveal/([A-Za-z0-9]+)")


@pytest.fixture
async def created_game(client: AsyncClient, email_sender) -> dict:
    """A verified game: {"game_id", "admin_token"}."""
    response = await client.post(
        "/api/v1/verifications",
        json={
            "email": TEST_ORGANIZER_EMAIL,
            "game_name": "Office Party",
            "event_date": "2026-12-24",
        },
    )
    verification_id = response.json()["data"]["id"]
    code = _CODE_RE.search(email_sender.sent[-1].text).group(1)
    response = await client.post(
        f"/api/v1/verifications/{verification_id}/verify", json={"code": code}
    )
    email_sender.sent.clear()
    return response.json()["data"]


def _game_url(game: dict, suffix: str = "") -> str:
    return f"/api/v1/games/{game['game_id']}{suffix}"


def _auth(game: dict) -> dict:
    return {"X-Admin-Token": game["admin_token"]}


async def _add(client: AsyncClient, game: dict, name: str) -> dict:
    response = await client.post(
        _game_url(game, "/participants"),
        json={"name": name, "email": f"{name.lower()}@example.com"},
        headers=_auth(game),
    )
    assert response.status_code == 201
    return response.json()["data"]


def _reveal_token(email_sender, address: str) -> str:
    [message] = [m for m in email_sender.sent if m.to == address]
    return _REVEAL_RE.search(message.text).group(1)


class TestAdminToken:
    """Every organizer endpoint requires the game's admin token."""

    async def test_missing_token(self, client: AsyncClient, created_game):
        response = await client.get(_game_url(created_game))
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"

    async def test_wrong_token(self, client: AsyncClient, created_game):
        response = await client.get(
            _game_url(created_game), headers={"X-Admin-Token": "x" * 32}
        )
        assert response.status_code == 401

    async def test_unknown_game(self, client: AsyncClient, created_game):
        response = await client.get(
            f"/api/v1/games/{uuid.uuid4()}", headers=_auth(created_game)
        )
        assert response.status_code == 404


class TestParticipantsEndpoints:
    """POST and PATCH participants."""

    async def test_add_and_list(self, client: AsyncClient, created_game):
        alice = await _add(client, created_game, "Alice")

        assert alice["email"] == "alice@example.com"
        assert alice["has_viewed"] is False
        assert "view_token" not in alice

        response = await client.get(_game_url(created_game), headers=_auth(created_game))
        data = response.json()["data"]
        assert data["drawn"] is False
        assert [p["name"] for p in data["participants"]] == ["Alice"]

    async def test_add_requires_valid_email(self, client: AsyncClient, created_game):
        response = await client.post(
            _game_url(created_game, "/participants"),
            json={"name": "Bob", "email": "bob"},
            headers=_auth(created_game),
        )
        assert response.status_code == 400

    async def test_update(self, client: AsyncClient, created_game):
        alice = await _add(client, created_game, "Alice")

        response = await client.patch(
            _game_url(created_game, f"/participants/{alice['id']}"),
            json={"name": "Alicia"},
            headers=_auth(created_game),
        )

        assert response.status_code == 200
        assert response.json()["data"]["name"] == "Alicia"

    async def test_update_with_empty_body(self, client: AsyncClient, created_game):
        alice = await _add(client, created_game, "Alice")

        response = await client.patch(
            _game_url(created_game, f"/participants/{alice['id']}"),
            json={},
            headers=_auth(created_game),
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"


class TestDrawAndReveal:
    """POST /draw then GET /reveal/{token}."""

    async def test_draw_then_reveal(self, client: AsyncClient, created_game, email_sender):
        for name in ("Alice", "Bob", "Carol"):
            await _add(client, created_game, name)

        response = await client.post(
            _game_url(created_game, "/draw"), headers=_auth(created_game)
        )

        assert response.status_code == 200
        assert response.json()["data"] == {"emails_sent": 3, "emails_failed": 0}
        assert email_sender.sent_to(TEST_ORGANIZER_EMAIL)

        token = _reveal_token(email_sender, "alice@example.com")
        reveal = await client.get(f"/api/v1/reveal/{token}")
        assert reveal.status_code == 200
        data = reveal.json()["data"]
        assert data["participant_name"] == "Alice"
        assert data["recipient_name"] in {"Bob", "Carol"}
        assert data["game_name"] == "Office Party"

        status = await client.get(_game_url(created_game), headers=_auth(created_game))
        viewed = {p["name"]: p["has_viewed"] for p in status.json()["data"]["participants"]}
        assert viewed == {"Alice": True, "Bob": False, "Carol": False}

    async def test_second_draw_conflicts(self, client: AsyncClient, created_game):
        for name in ("Alice", "Bob"):
            await _add(client, created_game, name)
        await client.post(_game_url(created_game, "/draw"), headers=_auth(created_game))

        response = await client.post(
            _game_url(created_game, "/draw"), headers=_auth(created_game)
        )

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "ALREADY_DRAWN"

    async def test_draw_needs_two(self, client: AsyncClient, created_game):
        await _add(client, created_game, "Solo")

        response = await client.post(
            _game_url(created_game, "/draw"), headers=_auth(created_game)
        )

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "INSUFFICIENT_PARTICIPANTS"

    async def test_add_after_draw_refused(self, client: AsyncClient, created_game):
        for name in ("Alice", "Bob"):
            await _add(client, created_game, name)
        await client.post(_game_url(created_game, "/draw"), headers=_auth(created_game))

        response = await client.post(
            _game_url(created_game, "/participants"),
            json={"name": "Late", "email": "late@example.com"},
            headers=_auth(created_game),
        )

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "INVALID_STATE_TRANSITION"

    async def test_unknown_reveal_token(self, client: AsyncClient):
        response = await client.get("/api/v1/reveal/" + "z" * 32)
        assert response.status_code == 404


class TestResendEndpoints:
    """Participant and bulk resends."""

    async def test_participant_resend_then_cooldown(
        self, client: AsyncClient, created_game, email_sender
    ):
        alice = await _add(client, created_game, "Alice")
        await _add(client, created_game, "Bob")
        await client.post(_game_url(created_game, "/draw"), headers=_auth(created_game))
        url = _game_url(created_game, f"/participants/{alice['id']}/resend")

        first = await client.post(url, headers=_auth(created_game))
        second = await client.post(url, headers=_auth(created_game))

        assert first.status_code == 200
        assert len(email_sender.sent_to("alice@example.com")) == 2
        assert second.status_code == 429
        assert second.json()["error"]["code"] == "COOLDOWN_ACTIVE"

    async def test_resend_all(self, client: AsyncClient, created_game):
        for name in ("Alice", "Bob"):
            await _add(client, created_game, name)
        await client.post(_game_url(created_game, "/draw"), headers=_auth(created_game))

        response = await client.post(
            _game_url(created_game, "/resend-all"), headers=_auth(created_game)
        )

        assert response.status_code == 200
        assert response.json()["data"]["emails_sent"] == 2

    async def test_resend_before_draw(self, client: AsyncClient, created_game):
        response = await client.post(
            _game_url(created_game, "/resend-all"), headers=_auth(created_game)
        )
        assert response.status_code == 422


async def test_delete_game(client: AsyncClient, created_game):
    response = await client.delete(_game_url(created_game), headers=_auth(created_game))
    assert response.status_code == 204

    response = await client.get(_game_url(created_game), headers=_auth(created_game))
    assert response.status_code == 404
