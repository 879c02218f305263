"""Tests for credential resolution."""
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from eduflow.integrations import CredentialResolver
from eduflow.models import IntegrationConnection, OAuthToken, OAuthTokens, User
from eduflow.storage import InMemoryStore


def connection(integration_type, organization_id="org_1", **credentials):
    return IntegrationConnection(organization_id=organization_id, type=integration_type, credentials=credentials)


@pytest.fixture
def resolver(store):
    return CredentialResolver(store, tokens=store, users=store)


class TestStoredConnections:

    @pytest.mark.asyncio
    async def test_single_integration(self, store, resolver):
        store.add_connection(connection("slack", webhookUrl="https://hooks.slack.com/x"))

        assert await resolver.resolve("org_1", "slack-send") == {"webhookUrl": "https://hooks.slack.com/x"}

    @pytest.mark.asyncio
    async def test_other_organization_is_invisible(self, store, resolver):
        store.add_connection(connection("slack", organization_id="org_2", webhookUrl="x"))

        assert await resolver.resolve("org_1", "slack-send") is None

    @pytest.mark.asyncio
    async def test_bundles_merge_in_catalogue_order(self, store, resolver):
        store.add_connection(connection("twilio", accountSid="AC1", fromNumber="+1555"))
        store.add_connection(connection("gmail", smtpHost="smtp.x", fromNumber="gmail-wins"))

        credentials = await resolver.resolve("org_1", "alert-send")

        assert credentials == {"accountSid": "AC1", "smtpHost": "smtp.x", "fromNumber": "gmail-wins"}

    @pytest.mark.asyncio
    async def test_node_without_integrations(self, resolver):
        assert await resolver.resolve("org_1", "delay") is None

    @pytest.mark.asyncio
    async def test_lookup_error_yields_empty_bundle(self, store):
        broken = InMemoryStore()
        broken.find_connection = AsyncMock(side_effect=ConnectionError("db down"))

        resolver = CredentialResolver(broken)

        assert await resolver.resolve("org_1", "slack-send") is None


class TestOAuthOverlay:

    @pytest.fixture
    def seeded(self, store):
        store.add_connection(connection("google-sheets", spreadsheetId="sheet_1", accessToken="stale"))
        store.add_user(
            User(id="user_a", organization_id="org_1"),
            OAuthTokens(google=OAuthToken(access_token="token-a", refresh_token="refresh-a")),
        )
        store.add_user(
            User(id="user_b", organization_id="org_1"),
            OAuthTokens(
                google=OAuthToken(access_token="token-b"),
                microsoft=OAuthToken(
                    access_token="ms-b",
                    expires_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
                ),
            ),
        )
        return store

    @pytest.mark.asyncio
    async def test_acting_user_token_overlays_connection(self, seeded, resolver):
        credentials = await resolver.resolve("org_1", "google-sheets", acting_user_id="user_b")

        assert credentials == {"spreadsheetId": "sheet_1", "accessToken": "token-b"}

    @pytest.mark.asyncio
    async def test_falls_back_to_any_organization_user(self, seeded, resolver):
        credentials = await resolver.resolve("org_1", "google-sheets")

        assert credentials["accessToken"] == "token-a"
        assert credentials["refreshToken"] == "refresh-a"

    @pytest.mark.asyncio
    async def test_unknown_acting_user_falls_back(self, seeded, resolver):
        credentials = await resolver.resolve("org_1", "google-sheets", acting_user_id="ghost")

        assert credentials["accessToken"] == "token-a"

    @pytest.mark.asyncio
    async def test_microsoft_token(self, seeded, resolver):
        credentials = await resolver.resolve("org_1", "microsoft-teams", acting_user_id="user_b")

        assert credentials == {"accessToken": "ms-b", "expiresAt": "2026-01-01T00:00:00+00:00"}

    @pytest.mark.asyncio
    async def test_token_lookup_error_keeps_connection(self, seeded):
        seeded.get_tokens = AsyncMock(side_effect=RuntimeError("cache down"))
        resolver = CredentialResolver(seeded, tokens=seeded, users=seeded)

        credentials = await resolver.resolve("org_1", "google-sheets")

        assert credentials == {"spreadsheetId": "sheet_1", "accessToken": "stale"}

    @pytest.mark.asyncio
    async def test_no_token_cache(self, seeded):
        resolver = CredentialResolver(seeded)

        assert await resolver.resolve("org_1", "google-sheets") == {"spreadsheetId": "sheet_1", "accessToken": "stale"}
