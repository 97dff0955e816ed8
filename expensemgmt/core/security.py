from typing import Annotated

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from expensemgmt.core import schemas
from expensemgmt.core.config import settings
from expensemgmt.core.database import get_gateway
from expensemgmt.core.gateway import ExpenseGateway

gateway_dep = Annotated[ExpenseGateway, Depends(get_gateway)]


# Tokens are issued by the identity provider, there is no login endpoint here
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token", auto_error=True)


# Decode the token and see who the reviewer is
async def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)], gateway: gateway_dep
) -> schemas.User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jwt.decode(
            token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM]
        )
        user_id = payload.get("user_id")

        if user_id is None:
            raise credentials_exception

    # Expired, tampered or garbage tokens
    except jwt.PyJWTError:
        raise credentials_exception

    # Only active users are returned by the directory
    users = await gateway.list_users()
    user = next((u for u in users if u.id == user_id), None)

    if user is None:
        raise credentials_exception

    return user


async def validate_manager_role(
    current_user: Annotated[schemas.User, Depends(get_current_user)],
) -> schemas.User:
    if current_user.role_name != settings.MANAGER_ROLE:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only managers can review expenses",
        )
    return current_user
