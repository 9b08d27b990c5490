import logging
from typing import Dict, Optional

from passlib.context import CryptContext
from pymongo.errors import DuplicateKeyError

from envwatch.models.user import AdminUser

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed_password: str) -> bool:
    return pwd_context.verify(password, hashed_password)


class CredentialStore:
    """Looks up admins and checks their passwords. Backends only need to
    implement get_user and add_user."""

    async def get_user(self, username: str) -> Optional[AdminUser]:
        raise NotImplementedError

    async def add_user(self, user: AdminUser) -> bool:
        """Store `user`; False when the username is already taken."""
        raise NotImplementedError

    async def ensure_indexes(self) -> None:
        pass

    async def authenticate(self, username: str, password: str) -> Optional[AdminUser]:
        user = await self.get_user(username)
        if not user or user.disabled:
            return None
        if not verify_password(password, user.hashed_password):
            return None
        return user

    async def ensure_admin(self, username: str, password: str) -> bool:
        """Seed the admin account; returns True when it was created."""
        created = await self.add_user(AdminUser(username=username, hashed_password=hash_password(password)))
        if created:
            logger.info("Admin user %s created", username)
        else:
            logger.info("Admin user %s already exists", username)
        return created


class InMemoryCredentialStore(CredentialStore):
    def __init__(self):
        self._users: Dict[str, AdminUser] = {}

    async def get_user(self, username: str) -> Optional[AdminUser]:
        return self._users.get(username)

    async def add_user(self, user: AdminUser) -> bool:
        if user.username in self._users:
            return False
        self._users[user.username] = user
        return True


class MongoCredentialStore(CredentialStore):
    def __init__(self, collection):
        self.collection = collection

    async def ensure_indexes(self) -> None:
        await self.collection.create_index("username", unique=True)

    async def get_user(self, username: str) -> Optional[AdminUser]:
        doc = await self.collection.find_one({"username": username})
        return AdminUser(**doc) if doc else None

    async def add_user(self, user: AdminUser) -> bool:
        try:
            await self.collection.insert_one(user.model_dump())
        except DuplicateKeyError:
            return False
        return True
