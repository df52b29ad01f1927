from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from device_store.core.security import user_id_from_token

security = HTTPBearer()


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> str:
    """
    Dependency for HTTP routes to get the caller's user id from a Bearer token.
    """
    return user_id_from_token(credentials.credentials)
