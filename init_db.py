import asyncio
import logging
import os
from sqlalchemy.future import select
from dotenv import load_dotenv

load_dotenv()

from app.database import async_session, init_db as create_tables
from app.models.user import User, UserRole
from app.security import get_password_hash

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

async def create_default_admin():
    email = os.getenv("DEFAULT_ADMIN_EMAIL", "admin@example.com")
    async with async_session() as session:
        stmt = select(User).where(User.email == email)
        result = await session.execute(stmt)
        if result.scalar_one_or_none() is None:
            hashed_password = get_password_hash(os.getenv("DEFAULT_ADMIN_PASSWORD", "admin"))
            default_admin = User(
                username=os.getenv("DEFAULT_ADMIN_USERNAME", "admin"),
                email=email,
                hashed_password=hashed_password,
                role=UserRole.admin.value
            )
            session.add(default_admin)
            await session.commit()
            logger.info("Default admin user created.")
        else:
            logger.info("Admin user already exists.")

async def init_db():
    await create_tables()
    await create_default_admin()


if __name__ == "__main__":
    logger.info("Initializing database and creating default admin user...")
    asyncio.run(init_db())
