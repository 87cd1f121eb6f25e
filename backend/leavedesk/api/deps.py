# ruff: noqa: B008
from __future__ import annotations

from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from leavedesk.config import Settings, get_settings
from leavedesk.db import SessionDep
from leavedesk.exceptions import Forbidden
from leavedesk.models.employee import Employee
from leavedesk.services.identity import IdentityProvider, IdentityResolver, get_identity_provider
from leavedesk.services.store import LeaveStore

bearer_scheme = HTTPBearer(auto_error=False)

SettingsDep = Annotated[Settings, Depends(get_settings)]
IdentityProviderDep = Annotated[IdentityProvider, Depends(get_identity_provider)]


async def get_store(session: SessionDep) -> LeaveStore:
    """Wrap the request's database session in the leave store adapter."""
    return LeaveStore(session)


StoreDep = Annotated[LeaveStore, Depends(get_store)]


async def get_session_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str | None:
    """Extract the bearer token, if any."""
    return credentials.credentials if credentials is not None else None


TokenDep = Annotated[str | None, Depends(get_session_token)]


async def get_current_employee(
    token: TokenDep,
    store: StoreDep,
    provider: IdentityProviderDep,
) -> Employee:
    """Resolve the acting employee for this request. Nothing is cached between requests."""
    return await IdentityResolver(provider, store).resolve(token)


CurrentEmployeeDep = Annotated[Employee, Depends(get_current_employee)]


async def require_manager(employee: CurrentEmployeeDep) -> Employee:
    """Require the manager role for the request."""
    if not employee.is_manager:
        raise Forbidden("Only managers can approve or reject leave requests")
    return employee


ManagerDep = Annotated[Employee, Depends(require_manager)]
