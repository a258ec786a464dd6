from .models import Identity

VIEWER = "Viewer"
EDITOR = "Editor"
ADMIN = "Admin"
ROLES = (VIEWER, EDITOR, ADMIN)

READ = "read"
CREATE = "create"
UPDATE = "update"
DELETE = "delete"
IMPORT = "import"

_WRITE_ACTIONS = {CREATE, UPDATE, DELETE, IMPORT}

_DENIED_MESSAGES = {
    UPDATE: "Not authorized to update transactions",
    DELETE: "Not authorized to delete transactions",
}


def can(role: str, action: str, *, owns: bool = True) -> bool:
    if role == ADMIN:
        return True
    if not owns:
        return False
    if role == EDITOR:
        return True
    if role == VIEWER:
        return action not in _WRITE_ACTIONS
    return False


def authorize(identity: Identity, action: str) -> str | None:
    """Check ``identity`` may perform ``action`` at all.

    Returns the owner id queries must be scoped to, or ``None`` when the
    identity may act on every owner's transactions. Raises
    ``PermissionError`` when the role lacks the capability even for its own
    data.
    """
    if not can(identity.role, action, owns=True):
        raise PermissionError(
            _DENIED_MESSAGES.get(action, "Not authorized to perform this action")
        )
    if can(identity.role, action, owns=False):
        return None
    return identity.user_id
