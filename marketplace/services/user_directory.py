# marketplace/services/user_directory.py
"""
User/role directory backed by the user service's internal API.

Roles drive pricing (individual vs shop) and authorization (supplier,
admin). Lookups go over HTTP with the internal API key and a bounded
timeout. Only a 404 means "unknown user"; an unreachable or failing
service raises UserDirectoryUnavailable so callers can offer a retry.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

import httpx

from marketplace.core.config import settings
from marketplace.core.errors import UserDirectoryUnavailable
from marketplace.schemas.order import BuyerRole

logger = logging.getLogger(__name__)

ROLE_INDIVIDUAL = "individual"
ROLE_SHOP = "shop"
ROLE_ADMIN = "admin"
ROLE_SUPPLIER = "supplier"

# When a user holds several buyer roles, the first match wins.
BUYER_ROLE_PRECEDENCE = (BuyerRole.shop, BuyerRole.individual, BuyerRole.admin)


@dataclass
class DirectoryUser:
    id: str
    roles: List[str] = field(default_factory=list)
    email: Optional[str] = None


def is_in_role(user: Optional[DirectoryUser], role: str) -> bool:
    if user is None:
        return False
    return role.lower() in {r.lower() for r in user.roles}


def resolve_buyer_role(user: Optional[DirectoryUser]) -> Optional[BuyerRole]:
    """Pricing role of a user, or None if they hold no buyer role."""
    for role in BUYER_ROLE_PRECEDENCE:
        if is_in_role(user, role.value):
            return role
    return None


class UserDirectoryInterface(ABC):
    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[DirectoryUser]:
        """
        Look up a user with their roles. None if unknown.

        Raises:
            UserDirectoryUnavailable: the directory could not be reached
        """
        pass

    async def is_user_in_role(self, user_id: str, role: str) -> bool:
        return is_in_role(await self.get_user(user_id), role)


class HttpUserDirectory(UserDirectoryInterface):
    """Reads users from GET {USER_SERVICE_URL}/internal/users/{id}."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        base_url = base_url or settings.USER_SERVICE_URL
        # Strip /graphql suffix if present (common misconfiguration)
        if base_url.endswith("/graphql"):
            base_url = base_url[:-8]
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key if api_key is not None else settings.INTERNAL_API_KEY
        self.timeout = timeout or settings.USER_SERVICE_TIMEOUT_SECONDS

    async def get_user(self, user_id: str) -> Optional[DirectoryUser]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(
                    f"{self.base_url}/internal/users/{user_id}",
                    headers={"x-api-key": self.api_key},
                )
        except httpx.TimeoutException:
            logger.error(f"Timeout fetching user {user_id} from user service")
            raise UserDirectoryUnavailable("User service timed out, please try again")
        except httpx.HTTPError as e:
            logger.error(f"Error fetching user {user_id}: {e}")
            raise UserDirectoryUnavailable("User service is unreachable, please try again")

        if response.status_code == 404:
            logger.info(f"User {user_id} not found in user service")
            return None
        if response.status_code != 200:
            logger.error(f"Failed to fetch user {user_id}: HTTP {response.status_code}")
            raise UserDirectoryUnavailable(
                f"User service answered HTTP {response.status_code}, please try again"
            )

        data = response.json()
        roles = data.get("roles") or []
        # The user service returns roles either as names or as {"name": ...} objects.
        role_names = [r.get("name", "") if isinstance(r, dict) else str(r) for r in roles]
        return DirectoryUser(
            id=data.get("id", user_id),
            roles=[r for r in role_names if r],
            email=data.get("email"),
        )
