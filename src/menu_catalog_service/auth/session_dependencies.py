"""FastAPI dependencies for session authentication.

Resolves the caller's session with the identity provider and turns it into
the explicit RequestContext passed to every owner-facing operation.
"""

from collections.abc import Mapping

from menu_catalog_service.exceptions import UnauthorizedError
from menu_catalog_service.models.catalog_models import RequestContext
from menu_catalog_service.services.identity_client import IdentityClient


async def get_request_context(headers: Mapping[str, str], identity_client: IdentityClient) -> RequestContext:
    """Build the request context from incoming headers.

    Args:
        headers: Request headers carrying the session cookie or bearer token
        identity_client: Client for the identity provider

    Returns:
        RequestContext: Context with the authenticated identity

    Raises:
        UnauthorizedError: If there is no valid session
    """
    identity = await identity_client.get_session(headers)
    if identity is None:
        raise UnauthorizedError()
    return RequestContext(identity=identity)
