"""Directory Service - Resolve role tags to user IDs"""
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional, Set

from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from ..domain.errors import ExternalServiceError
from ..repositories.mongo_client import get_collection, USERS
from ..utils.logger import get_logger

logger = get_logger(__name__)


class DirectoryService(ABC):
    """Role to user resolver consumed by the engine when assigning processes"""

    @abstractmethod
    def users_with_roles(self, roles: Iterable[str]) -> Set[str]:
        """IDs of users holding any of the given roles"""

    def resolve_assignees(self, roles: Iterable[str]) -> List[str]:
        """Sorted user IDs for a state's assigned_roles (empty roles -> nobody)"""
        roles = [r for r in roles or [] if r]
        if not roles:
            return []
        return sorted(self.users_with_roles(roles))


class MongoDirectoryService(DirectoryService):
    """
    Directory backed by the users collection

    Documents look like {"user_id": "...", "roles": ["Manager"], "active": true}.
    """

    def __init__(self, collection: Optional[Collection] = None):
        self._users: Collection = collection if collection is not None else get_collection(USERS)

    def users_with_roles(self, roles: Iterable[str]) -> Set[str]:
        roles = list(roles)
        try:
            cursor = self._users.find(
                {"roles": {"$in": roles}, "active": {"$ne": False}},
                {"user_id": 1}
            )
            return {doc["user_id"] for doc in cursor if doc.get("user_id")}
        except PyMongoError as e:
            logger.error(f"Failed to resolve users for roles {roles}: {e}")
            raise ExternalServiceError(
                "User directory unavailable",
                details={"roles": roles}
            )


class StaticDirectoryService(DirectoryService):
    """Directory from a fixed role -> users mapping (development and tests)"""

    def __init__(self, mapping: Optional[Dict[str, Iterable[str]]] = None):
        self._mapping: Dict[str, Set[str]] = {
            role: set(users) for role, users in (mapping or {}).items()
        }

    def add_user(self, user_id: str, roles: Iterable[str]) -> None:
        for role in roles:
            self._mapping.setdefault(role, set()).add(user_id)

    def users_with_roles(self, roles: Iterable[str]) -> Set[str]:
        users: Set[str] = set()
        for role in roles:
            users |= self._mapping.get(role, set())
        return users
