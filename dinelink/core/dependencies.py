import logging
from fastapi import Depends, HTTPException, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from dinelink.db.session import get_db
from dinelink.core.jwt_config import decode_token, get_token_from_cookie
from dinelink.services.user_service import get_user_by_id

logger = logging.getLogger(__name__)

async def get_current_user(request: Request, db: AsyncSession = Depends(get_db)):
    token = get_token_from_cookie(request=request)
    payload = decode_token(token)
    user_id = payload.get("sub")

    if user_id is None:
        raise HTTPException(status_code=401, detail="Invalid authentication credentials")

    try:
        user = await get_user_by_id(db, int(user_id))
    except ValueError:
        raise HTTPException(status_code=401, detail="Could not validate credentials")
    except SQLAlchemyError as e:
        logger.error("Failed to load user %s: %s", user_id, e)
        raise HTTPException(status_code=503, detail="Failed to load user")

    if user is None:
        raise HTTPException(status_code=401, detail="User not found")

    return user
