"""
Dependances d'identification / Identity dependencies.
Injectees dans les routes via Depends().

L'authentification est faite en amont (passerelle) : l'appelant est identifie par X-User-ID
et son tenant est celui de l'utilisateur.
Authentication happens upstream (gateway): the caller is identified by X-User-ID and
its tenant is the user's company.
"""

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fleetmaint.database import get_db
from fleetmaint.models.user import User


async def get_current_user(
    x_user_id: int | None = Header(None, alias="X-User-ID"),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Utilisateur appelant / Calling user."""
    if x_user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-User-ID header")

    result = await db.execute(select(User).where(User.id == x_user_id))
    user = result.scalar_one_or_none()

    if user is None or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found or inactive")

    return user


def client_metadata(request: Request) -> tuple[str | None, str | None]:
    """IP et user-agent pour la signature / IP and user agent for the signature."""
    forwarded = request.headers.get("X-Forwarded-For")
    ip_address = forwarded.split(",")[0].strip() if forwarded else (request.client.host if request.client else None)
    return ip_address, request.headers.get("User-Agent")
