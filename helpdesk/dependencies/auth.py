from typing import Annotated

from fastapi import Depends, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from helpdesk.accounts.models import User
from helpdesk.core.errors import Unauthenticated
from helpdesk.dependencies.services import AccountServiceDep

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Security(bearer_scheme)],
    accounts: AccountServiceDep,
) -> User:
    """Resolve the bearer access token to the user it was issued for."""

    if credentials is None or credentials.scheme.lower() != "bearer":
        raise Unauthenticated("No token provided")
    return await accounts.authenticate(credentials.credentials)


CurrentUser = Annotated[User, Depends(get_current_user)]
