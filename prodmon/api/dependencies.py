"""
Request dependencies: caller token and dashboard session
"""

from typing import Optional

from fastapi import Depends, Header, Request

from prodmon.clients.manifest import ManifestCache
from prodmon.core.config import settings
from prodmon.core.errors import AuthenticationRequired, PermissionDenied
from prodmon.dashboard.auth import is_admin, resolve_token
from prodmon.dashboard.session import DashboardSession, SessionRegistry


def get_token(authorization: Optional[str] = Header(None)) -> str:
    """Caller's Cognito ID token"""
    return resolve_token(authorization, settings.id_token)


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.sessions


def get_manifest(request: Request) -> ManifestCache:
    return request.app.state.manifest


async def get_dashboard(
    token: str = Depends(get_token),
    registry: SessionRegistry = Depends(get_registry),
) -> DashboardSession:
    """Bootstrapped session for the caller"""
    return await registry.get(token)


async def get_admin_dashboard(
    token: str = Depends(get_token),
    registry: SessionRegistry = Depends(get_registry),
) -> DashboardSession:
    """Session for a member of the admin group"""
    # group claims are only read from a token AppSync has accepted
    dashboard = await registry.get(token)
    if not dashboard.bootstrap.is_logged_in:
        raise AuthenticationRequired(dashboard.bootstrap.error or "Login required (no idToken)")
    if not is_admin(token):
        raise PermissionDenied()
    return dashboard
