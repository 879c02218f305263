"""Credential resolution for node executions."""
from typing import Any, Dict, Optional

from eduflow.integrations.catalog import (
    is_google_integration,
    is_microsoft_integration,
    required_integrations,
)
from eduflow.models import OAuthToken
from eduflow.observability import get_logger
from eduflow.storage.protocols import IntegrationStore, TokenCache, UserDirectory

logger = get_logger(__name__)


class CredentialResolver:
    """
    Builds the credential bundle handed to a node.

    For each integration the node type needs, the stored connection of the
    organization is read. Google and Microsoft integrations additionally get
    the acting user's cached OAuth token (or, with no acting user, the token
    of any user of the organization) overlaid on top. Bundles are merged by
    key in catalogue order, later integrations overwriting earlier ones.
    """

    def __init__(
        self,
        integrations: IntegrationStore,
        tokens: Optional[TokenCache] = None,
        users: Optional[UserDirectory] = None,
    ):
        self.integrations = integrations
        self.tokens = tokens
        self.users = users

    async def resolve(
        self,
        organization_id: str,
        node_type: str,
        acting_user_id: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Resolve credentials for one node.

        Returns:
            Merged credential dict, or None when nothing was found
        """
        merged: Dict[str, Any] = {}
        for integration_type in required_integrations(node_type):
            merged.update(await self._resolve_one(organization_id, integration_type, acting_user_id))
        return merged or None

    async def _resolve_one(
        self,
        organization_id: str,
        integration_type: str,
        acting_user_id: Optional[str],
    ) -> Dict[str, Any]:
        extra = {"organization_id": organization_id, "integration": integration_type}
        bundle: Dict[str, Any] = {}

        try:
            connection = await self.integrations.find_connection(organization_id, integration_type)
            if connection is not None:
                bundle.update(connection.credentials)
        except Exception as e:
            logger.error(f"Error fetching integration credentials: {e}", extra=extra)
            return {}

        if is_google_integration(integration_type) or is_microsoft_integration(integration_type):
            try:
                token = await self._oauth_token(organization_id, integration_type, acting_user_id)
            except Exception as e:
                logger.error(f"Error fetching OAuth token: {e}", extra=extra)
                token = None
            if token is not None:
                bundle.update(token.as_credentials())

        return bundle

    async def _oauth_token(
        self,
        organization_id: str,
        integration_type: str,
        acting_user_id: Optional[str],
    ) -> Optional[OAuthToken]:
        if self.tokens is None or self.users is None:
            return None

        user = None
        if acting_user_id:
            user = await self.users.find_user_by_acting_id(acting_user_id)
        if user is None:
            user = await self.users.find_any_user_in_organization(organization_id)
        if user is None:
            return None

        cached = await self.tokens.get_tokens(user.id)
        if cached is None:
            return None
        return cached.google if is_google_integration(integration_type) else cached.microsoft


__all__ = ["CredentialResolver"]
