"""
AppSync GraphQL client
Posts queries directly with the caller's Cognito ID token
"""

import asyncio
import json
from typing import Any, Dict, Optional

import aiohttp
import structlog

from prodmon.core.errors import AppSyncError, AuthenticationRequired

logger = structlog.get_logger(__name__)


def mask_token(token: str, head: int = 12, tail: int = 8) -> str:
    """Show only the head and tail of a token for logs"""
    if len(token) <= head + tail:
        return token
    return f"{token[:head]}...{token[-tail:]}"


class AppSyncClient:
    """Thin GraphQL-over-HTTP client bound to one identity token"""

    def __init__(self, http_session: aiohttp.ClientSession, endpoint: str, id_token: Optional[str],
                 timeout: float = 15.0):
        self.http_session = http_session
        self.endpoint = endpoint
        self.id_token = id_token
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    async def execute(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Run a query or mutation and return its ``data`` object.

        Raises:
            AuthenticationRequired: no ID token is available
            AppSyncError: GraphQL errors, HTTP errors or transport failure
        """
        logger.debug("AppSync call start", variables=variables or "(none)", query_head=query.strip()[:80])

        if not self.id_token:
            logger.debug("No idToken, login required")
            raise AuthenticationRequired()

        logger.debug("AppSync idToken", token=mask_token(self.id_token))

        headers = {
            "Content-Type": "application/json",
            # AppSync user-pool auth takes the raw JWT, no Bearer prefix
            "Authorization": self.id_token,
        }
        body = {"query": query, "variables": variables}

        try:
            async with self.http_session.post(self.endpoint, json=body, headers=headers,
                                              timeout=self.timeout) as response:
                status = response.status
                try:
                    payload = await response.json(content_type=None)
                except (json.JSONDecodeError, aiohttp.ContentTypeError):
                    text = await response.text()
                    raise AppSyncError(f"HTTP {status}: {text[:200]}")
        except aiohttp.ClientError as e:
            logger.error("AppSync request failed", error=str(e))
            raise AppSyncError(str(e)) from e
        except asyncio.TimeoutError as e:
            logger.error("AppSync request timed out", timeout=self.timeout.total)
            raise AppSyncError("Request timed out") from e

        logger.debug("AppSync http status", status=status)

        if not isinstance(payload, dict):
            raise AppSyncError(f"HTTP {status}: unexpected response")

        errors = payload.get("errors")
        if errors:
            logger.debug("AppSync graphql errors", errors=errors)
            raise AppSyncError(json.dumps(errors, indent=2, ensure_ascii=False))

        if status >= 400:
            raise AppSyncError(f"HTTP {status}")

        logger.debug("AppSync call end (success)", keys=list(payload.keys()))
        return payload.get("data") or {}
