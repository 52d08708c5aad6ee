"""
Tenant credential store backed by Appwrite.

Tenant passwords never touch this service's database: Appwrite owns them.
The Appwrite SDK is synchronous, so every call runs in the threadpool.
"""
from typing import Optional

from appwrite.client import Client
from appwrite.exception import AppwriteException
from appwrite.id import ID
from appwrite.services.account import Account
from appwrite.services.users import Users
from starlette.concurrency import run_in_threadpool

from app.core import config
from app.utils import get_logger


log = get_logger(__name__)

# Appwrite answers bad credentials with these codes
_REJECTED_CREDENTIAL_CODES = {400, 401, 404}


class AppwriteClient:
    """Singleton Appwrite clients for server-side operations."""

    _instance: Optional[Client] = None
    _session_instance: Optional[Client] = None

    @classmethod
    def get_client(cls) -> Client:
        """Get or create the API-key client used for user management."""
        if cls._instance is None:
            cls._instance = Client()
            cls._instance.set_endpoint(config.APPWRITE_ENDPOINT)
            cls._instance.set_project(config.APPWRITE_PROJECT_ID)
            cls._instance.set_key(config.APPWRITE_API_KEY)
        return cls._instance

    @classmethod
    def get_session_client(cls) -> Client:
        """Get or create a key-less client; email/password sessions need one."""
        if cls._session_instance is None:
            cls._session_instance = Client()
            cls._session_instance.set_endpoint(config.APPWRITE_ENDPOINT)
            cls._session_instance.set_project(config.APPWRITE_PROJECT_ID)
        return cls._session_instance


class AppwriteIdentityStore:
    """Async facade over the Appwrite account and users services."""

    def __init__(self, admin_client: Client, session_client: Client):
        self.users = Users(admin_client)
        self.account = Account(session_client)

    async def verify_password(self, email: str, password: str) -> Optional[str]:
        """
        Check an email/password pair.

        Returns:
            The Appwrite user id, or None when the credentials are rejected
        """
        try:
            session = await run_in_threadpool(self.account.create_email_password_session, email, password)
        except AppwriteException as e:
            if e.code in _REJECTED_CREDENTIAL_CODES:
                return None
            raise

        user_id = session["userId"]
        try:
            # Only the check was needed; don't leave the session behind
            await run_in_threadpool(self.users.delete_session, user_id, session["$id"])
        except AppwriteException as e:
            log.warning("Could not remove verification session for %s: %s", user_id, e.message)
        return user_id

    async def create_user(self, email: str, password: str, name: str) -> str:
        user = await run_in_threadpool(
            self.users.create, ID.unique(), email=email, password=password, name=name
        )
        return user["$id"]

    async def update_password(self, appwrite_id: str, password: str) -> None:
        await run_in_threadpool(self.users.update_password, appwrite_id, password)

    async def delete_user(self, appwrite_id: str) -> None:
        await run_in_threadpool(self.users.delete, appwrite_id)


_identity_store: Optional[AppwriteIdentityStore] = None


def get_identity_store() -> AppwriteIdentityStore:
    """FastAPI dependency returning the process-wide identity store."""
    global _identity_store
    if _identity_store is None:
        _identity_store = AppwriteIdentityStore(
            AppwriteClient.get_client(), AppwriteClient.get_session_client()
        )
    return _identity_store
