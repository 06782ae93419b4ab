from __future__ import annotations

"""API-key authentication and organization scoping."""

from dataclasses import dataclass

from fastapi import HTTPException, Request, status

from docsearch.app.settings import settings


@dataclass(frozen=True)
class AuthContext:
    """Resolved caller identity for the current request."""
    api_key: str | None
    role: str
    organization_id: str


def _unauthorized(detail: str = "Invalid or missing API key") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def require_api_key(request: Request) -> AuthContext:
    """Validate the API key, or allow anonymous access if configured."""
    api_key = _extract_api_key(request)
    key_map = settings.api_key_map
    allowed = settings.api_keys
    if not (key_map or allowed):
        if settings.allow_anonymous:
            return AuthContext(
                api_key=None,
                role="admin",
                organization_id=settings.default_organization_id,
            )
        raise _unauthorized("API key required")
    if api_key is None:
        raise _unauthorized()
    if key_map:
        entry = key_map.get(api_key)
        if not entry:
            raise _unauthorized()
        return AuthContext(
            api_key=api_key,
            role=entry["role"].lower(),
            organization_id=entry["organization_id"],
        )
    if api_key not in allowed:
        raise _unauthorized()
    return AuthContext(api_key=api_key, role="admin", organization_id=settings.default_organization_id)


def require_roles(auth: AuthContext, allowed: set[str]) -> None:
    """Enforce role-based access control."""
    if auth.role not in allowed:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions",
        )


def resolve_organization_id(request: Request, auth: AuthContext) -> str:
    """Resolve the organization scope, allowing an admin override via header."""
    header = request.headers.get("x-organization-id")
    if header and header.strip() and auth.role == "admin":
        return header.strip()
    return auth.organization_id


def _extract_api_key(request: Request) -> str | None:
    header_key = request.headers.get("x-api-key")
    if header_key:
        return header_key.strip()
    auth = request.headers.get("authorization")
    if not auth:
        return None
    parts = auth.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1].strip()
    return None
