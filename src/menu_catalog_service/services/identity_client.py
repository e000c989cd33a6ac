"""Client for the external identity provider's session endpoint."""

import logging
from collections.abc import Mapping

import httpx

from menu_catalog_service.models.catalog_models import Identity

logger = logging.getLogger(__name__)

FORWARDED_HEADERS = ("cookie", "authorization")


class IdentityClient:
    """Resolves request credentials into an Identity.

    The identity provider owns sign-up, sign-in and session issuance; this
    client only forwards the caller's cookie or bearer token and reads back
    the user the session belongs to.
    """

    def __init__(self, base_url: str, timeout: float = 5.0) -> None:
        """Initialize the identity client.

        Args:
            base_url: Base URL of the identity provider (e.g. "https://auth.example.com")
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def get_session(self, headers: Mapping[str, str]) -> Identity | None:
        """Look up the session carried by a request's headers.

        Args:
            headers: Incoming request headers (case-insensitive mapping or lower-case keys)

        Returns:
            Identity of the session's user, or None if there is no valid session
            or the provider could not be reached
        """
        forwarded = {name: value for name in FORWARDED_HEADERS if (value := headers.get(name))}
        if not forwarded:
            return None

        url = f"{self.base_url}/api/auth/get-session"

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(url, headers=forwarded)
                response.raise_for_status()
                data = response.json()

        except (httpx.HTTPStatusError, httpx.RequestError) as e:
            logger.error(f"Failed to resolve session with identity provider: {e}")
            return None
        except ValueError as e:
            logger.error(f"Identity provider returned invalid JSON: {e}")
            return None

        user = data.get("user") if isinstance(data, dict) else None
        if not isinstance(user, dict) or not user.get("id"):
            return None

        return Identity(
            user_id=str(user["id"]),
            email=user.get("email"),
            name=user.get("name"),
            email_verified=bool(user.get("emailVerified", False)),
        )
