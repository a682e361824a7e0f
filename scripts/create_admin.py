import asyncio
import os
import sys

# Add project root to sys.path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.core.exceptions import InkwellError
from app.db.session import async_session_maker
from app.models.enums import Role
from app.schemas.user import UserCreate
from app.services.auth_service import create_user


async def create_admin(email, username, password):
    async with async_session_maker() as session:
        try:
            user = await create_user(
                session,
                UserCreate(email=email, username=username, password=password, first_name="Site", last_name="Admin"),
                role=Role.ADMIN,
            )
            user.email_verified = True
            await session.commit()
        except InkwellError as e:
            await session.rollback()
            print(f"Error: {e.detail}")
            return
        print("Success: Admin created!")
        print(f"Email: {email}")
        print(f"Username: {username}")


if __name__ == "__main__":
    if len(sys.argv) < 4:
        print("Usage: python scripts/create_admin.py <email> <username> <password>")
        sys.exit(1)

    asyncio.run(create_admin(sys.argv[1], sys.argv[2], sys.argv[3]))
