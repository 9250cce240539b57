"""
Caller identity.

Token verification happens upstream (API gateway / identity provider); the
bearer credential that reaches this service is the already-verified subject,
which is matched against users.auth_uid.
"""

import logging
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .database import get_db
from .models import User

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the bearer subject to a marketplace user"""
    if not credentials or not credentials.credentials:
        logger.warning("⚠️ No credentials provided")
        raise HTTPException(
            status_code=401,
            detail="Not authenticated. Please provide a Bearer token in the Authorization header.",
        )

    auth_uid = credentials.credentials.strip()
    user = db.query(User).filter(User.auth_uid == auth_uid).first()
    if not user:
        logger.warning(f"⚠️ Unknown subject presented (length {len(auth_uid)})")
        raise HTTPException(status_code=401, detail="Unknown user")

    logger.debug(f"✅ User authenticated: {user.id}")
    return user
