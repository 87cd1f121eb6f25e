from __future__ import annotations

from fastapi import APIRouter, status

from leavedesk.api.deps import IdentityProviderDep, StoreDep, TokenDep
from leavedesk.exceptions import Unauthenticated
from leavedesk.schemas.auth import IdentityState, LoginPayload, TokenResponse
from leavedesk.services.identity import IdentityContext, IdentityResolver

auth_router = APIRouter(prefix="/auth", tags=["auth"])


@auth_router.post("/login", response_model=TokenResponse)
async def login(payload: LoginPayload, provider: IdentityProviderDep) -> TokenResponse:
    """Sign in with email and password."""
    session = await provider.sign_in(payload.email, payload.password)
    return TokenResponse(access_token=session.token, expires_at=session.expires_at)


@auth_router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(token: TokenDep, provider: IdentityProviderDep) -> None:
    """Discard the current session."""
    if token is not None:
        await provider.sign_out(token)


@auth_router.post("/refresh", response_model=TokenResponse)
async def refresh(token: TokenDep, provider: IdentityProviderDep) -> TokenResponse:
    """Swap the current session token for a fresh one."""
    if token is None:
        raise Unauthenticated("Not signed in")
    session = await provider.refresh(token)
    return TokenResponse(access_token=session.token, expires_at=session.expires_at)


@auth_router.get("/me", response_model=IdentityState)
async def me(token: TokenDep, store: StoreDep, provider: IdentityProviderDep) -> IdentityState:
    """Report who the bearer token belongs to, or why it resolves to nobody."""
    context = IdentityContext(IdentityResolver(provider, store))
    return await context.on_session_change(token)
