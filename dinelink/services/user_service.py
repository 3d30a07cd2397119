from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from dinelink.models.user import User

async def get_user_by_id(db: AsyncSession, id: int):
    result = await db.execute(select(User).where(User.id == id))
    return result.scalar_one_or_none()
