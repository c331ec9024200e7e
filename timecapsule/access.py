from timecapsule.errors import AuthError, NotFoundError


def is_creator(principal_id: str, capsule) -> bool:
    return capsule.creator_id == principal_id


def authorize_owner(principal_id: str, capsule):
    """Read, update and delete are reserved to the creator.

    Runs before any lock-state check, so a foreign principal learns only that
    the capsule exists, never whether it is locked.
    """
    if capsule is None:
        raise NotFoundError()
    if not is_creator(principal_id, capsule):
        raise AuthError()
    return capsule


def authorize_contributor(principal_id: str, capsule):
    # Communal capsules are flagged but still creator-only for contributions.
    if capsule is None or not is_creator(principal_id, capsule):
        raise NotFoundError("Capsule not found or access denied.")
    return capsule
