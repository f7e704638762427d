from typing import Optional
from multiscim.schemas import GroupResponse, UserResponse


def user_reference(identifier: Optional[str]) -> Optional[str]:
    """Service-relative ``$ref`` for a User id."""
    if not identifier:
        return None
    return f"../Users/{identifier}"


def populate_group_references(group: GroupResponse) -> GroupResponse:
    # $ref is server-managed: any client supplied value is replaced
    for member in group.members or []:
        if member.value:
            member.ref = user_reference(member.value)
    return group


def populate_user_references(user: UserResponse) -> UserResponse:
    manager = user.enterprise_user.manager if user.enterprise_user else None
    if manager is not None:
        if manager.value:
            manager.ref = user_reference(manager.value)
        elif not manager.ref and not manager.display_name:
            user.enterprise_user.manager = None
    return user
