"""Tests for request identity dependencies."""

import pytest
from fastapi import HTTPException

from solardesk.auth.middleware import (
    get_current_actor,
    require_admin,
    require_role,
    require_superadmin,
    require_user,
)
from solardesk.services.workflow import Actor, Role


class TestGetCurrentActor:
    """Tests for the gateway identity headers."""

    async def test_valid_headers(self):
        actor = await get_current_actor(x_user_id="u-42", x_user_role="Admin ")
        assert actor == Actor(id="u-42", role=Role.ADMIN)

    @pytest.mark.parametrize(
        "user_id,role",
        [(None, "user"), ("u-1", None), ("", "user"), ("u-1", "guest")],
    )
    async def test_missing_or_unknown_is_401(self, user_id, role):
        with pytest.raises(HTTPException) as exc_info:
            await get_current_actor(x_user_id=user_id, x_user_role=role)
        assert exc_info.value.status_code == 401


class TestRequireRole:
    """Tests for the role guards."""

    async def test_allowed(self):
        actor = Actor(id="s-1", role=Role.SUPERADMIN)
        assert await require_admin(actor) is actor
        assert await require_superadmin(actor) is actor
        assert await require_user(actor) is actor

    async def test_denied_is_403(self):
        actor = Actor(id="u-1", role=Role.USER)
        with pytest.raises(HTTPException) as exc_info:
            await require_admin(actor)
        assert exc_info.value.status_code == 403

    async def test_admin_is_not_superadmin(self):
        with pytest.raises(HTTPException):
            await require_superadmin(Actor(id="a-1", role=Role.ADMIN))

    async def test_custom_guard(self):
        guard = require_role(Role.USER)
        with pytest.raises(HTTPException):
            await guard(Actor(id="a-1", role=Role.ADMIN))
