import asyncio
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from marketplace.core.errors import UserDirectoryUnavailable
from marketplace.schemas.order import BuyerRole
from marketplace.services.user_directory import DirectoryUser, HttpUserDirectory, resolve_buyer_role


def run_async(coro):
    """Helper to run async coroutines in sync tests."""
    return asyncio.run(coro)


def _response(status_code, json=None):
    request = httpx.Request("GET", "http://users.test/internal/users/u1")
    return httpx.Response(status_code, json=json, request=request)


@pytest.fixture
def directory():
    return HttpUserDirectory(base_url="http://users.test/graphql", api_key="key_123", timeout=1)


class TestHttpUserDirectory:
    def test_strips_graphql_suffix(self, directory):
        assert directory.base_url == "http://users.test"

    def test_roles_as_strings_and_objects(self, directory):
        body = {"id": "u1", "email": "u1@example.com", "roles": ["Shop", {"name": "supplier"}, {}]}
        with patch.object(httpx.AsyncClient, "get", new=AsyncMock(return_value=_response(200, body))) as get:
            user = run_async(directory.get_user("u1"))
            is_shop = run_async(directory.is_user_in_role("u1", "shop"))

        assert user == DirectoryUser(id="u1", roles=["Shop", "supplier"], email="u1@example.com")
        assert get.call_args.kwargs["headers"] == {"x-api-key": "key_123"}
        assert is_shop is True

    def test_unknown_user(self, directory):
        with patch.object(httpx.AsyncClient, "get", new=AsyncMock(return_value=_response(404))):
            assert run_async(directory.get_user("u1")) is None

    def test_server_error_is_retryable(self, directory):
        with patch.object(httpx.AsyncClient, "get", new=AsyncMock(return_value=_response(503))):
            with pytest.raises(UserDirectoryUnavailable) as exc_info:
                run_async(directory.get_user("u1"))
        assert exc_info.value.retryable is True

    def test_timeout(self, directory):
        with patch.object(
            httpx.AsyncClient, "get", new=AsyncMock(side_effect=httpx.ReadTimeout("slow"))
        ):
            with pytest.raises(UserDirectoryUnavailable):
                run_async(directory.get_user("u1"))
            with pytest.raises(UserDirectoryUnavailable):
                run_async(directory.is_user_in_role("u1", "admin"))

    def test_connection_refused(self, directory):
        with patch.object(
            httpx.AsyncClient, "get", new=AsyncMock(side_effect=httpx.ConnectError("refused"))
        ):
            with pytest.raises(UserDirectoryUnavailable):
                run_async(directory.get_user("u1"))


class TestBuyerRole:
    @pytest.mark.parametrize(
        "roles,expected",
        [
            (["individual"], BuyerRole.individual),
            (["SHOP"], BuyerRole.shop),
            (["individual", "shop"], BuyerRole.shop),
            (["admin"], BuyerRole.admin),
            (["supplier"], None),
            ([], None),
        ],
    )
    def test_resolution(self, roles, expected):
        assert resolve_buyer_role(DirectoryUser(id="u1", roles=roles)) == expected

    def test_missing_user(self):
        assert resolve_buyer_role(None) is None
