"""Permission Guard - Role-based authorization for template actions"""
from typing import Iterable, List, Optional

from ..config.settings import settings
from ..domain.models import ActionTemplate, ActorContext, ProcessInstance
from ..utils.logger import get_logger

logger = get_logger(__name__)


class PermissionGuard:
    """
    Permission enforcement for process operations

    Rules:
    - An action with no allowed_roles is open to every actor
    - Otherwise the actor needs at least one allowed role
    - The super-role (Admin by default) bypasses every role check
    - Reassigning needs the super-role or a current assignee
    - Changing the deadline or priority needs the super-role or the process starter
    - Commenting needs the super-role, the starter or a current assignee
    """

    def __init__(self, super_role: Optional[str] = None):
        self.super_role = super_role or settings.super_role

    def authorize(self, actor_roles: Iterable[str], allowed_roles: Iterable[str]) -> bool:
        """Check if a role set satisfies an action's allowed roles"""
        allowed = list(allowed_roles or [])
        if not allowed:
            return True

        roles = set(actor_roles or [])
        if self.super_role in roles:
            return True

        return any(role in roles for role in allowed)

    def is_admin(self, actor: ActorContext) -> bool:
        return self.super_role in actor.roles

    def filter_actions(
        self,
        actor_roles: Iterable[str],
        actions: List[ActionTemplate]
    ) -> List[ActionTemplate]:
        """Keep actions the role set may perform, in template order"""
        roles = list(actor_roles or [])
        return [a for a in actions if self.authorize(roles, a.allowed_roles)]

    def can_reassign(self, actor: ActorContext, process: ProcessInstance) -> bool:
        if self.is_admin(actor):
            return True
        return actor.actor_id in process.assigned_to

    def can_set_deadline(self, actor: ActorContext, process: ProcessInstance) -> bool:
        if self.is_admin(actor):
            return True
        return actor.actor_id == process.started_by

    def can_set_priority(self, actor: ActorContext, process: ProcessInstance) -> bool:
        return self.can_set_deadline(actor, process)

    def can_comment(self, actor: ActorContext, process: ProcessInstance) -> bool:
        if self.is_admin(actor):
            return True
        return actor.actor_id == process.started_by or actor.actor_id in process.assigned_to
