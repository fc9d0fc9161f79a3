"""
Bona access-control error hierarchy.

Every error raised by the membership, permission, admission and audit
services derives from AccessControlError and carries a stable `code`.
Callers discriminate on the exception class (or `code`), never on the
message text.
"""


class AccessControlError(Exception):
    """Base error for all access-control failures."""
    code = "ACCESS_CONTROL_ERROR"


# ---------------------------------------------------------
# Membership
# ---------------------------------------------------------
class NotAMemberError(AccessControlError):
    """Target user has no membership in the project."""
    code = "NOT_A_MEMBER"


class AlreadyMemberError(AccessControlError):
    """A membership for (project, user) already exists."""
    code = "ALREADY_MEMBER"


class OwnerAlreadyExistsError(AccessControlError):
    """The project already has its single owner."""
    code = "OWNER_ALREADY_EXISTS"


class InsufficientPermissionsError(AccessControlError):
    """Requester's role does not allow the operation."""
    code = "INSUFFICIENT_PERMISSIONS"


class CannotModifyOwnerError(AccessControlError):
    """Owner's role cannot be changed through a role change."""
    code = "CANNOT_MODIFY_OWNER"


class CannotRemoveOwnerError(AccessControlError):
    """Owner cannot be removed from the project."""
    code = "CANNOT_REMOVE_OWNER"


# ---------------------------------------------------------
# Invitations
# ---------------------------------------------------------
class InvalidInvitationOptionsError(AccessControlError):
    """Options passed when opening admissions are not acceptable."""
    code = "INVALID_INVITATION_OPTIONS"


class InvitationError(AccessControlError):
    """Base error for an invitation token that cannot be redeemed."""
    code = "INVITATION_ERROR"


class InvalidTokenError(InvitationError):
    """No invitation link matches the token."""
    code = "INVALID_TOKEN"


class InvitationDeactivatedError(InvitationError):
    """The invitation link was deactivated."""
    code = "INVITATION_DEACTIVATED"


class InvitationExpiredError(InvitationError):
    """The invitation link is past its expiration time."""
    code = "INVITATION_EXPIRED"


class InvitationExhaustedError(InvitationError):
    """The invitation link reached its maximum number of uses."""
    code = "INVITATION_EXHAUSTED"


# ---------------------------------------------------------
# Audit
# ---------------------------------------------------------
class AuditWriteFailedError(AccessControlError):
    """An audit record could not be written; the enclosing mutation is aborted."""
    code = "AUDIT_WRITE_FAILED"
