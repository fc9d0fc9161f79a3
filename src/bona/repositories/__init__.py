# src/bona/repositories/__init__.py
from .membership_repository import MembershipRepository
from .invitation_link_repository import InvitationLinkRepository
from .audit_log_repository import AuditLogRepository

__all__ = [
    "MembershipRepository",
    "InvitationLinkRepository",
    "AuditLogRepository",
]
