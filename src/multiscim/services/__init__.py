from .user_service import UserService
from .group_service import GroupService
from .tenant import TenantService
from .token_service import TokenService
from .patch_interpreter import PatchInterpreter, UserPatchInterpreter, GroupPatchInterpreter

__all__ = [
    "TenantService",
    "TokenService",
    "UserService",
    "GroupService",
    "PatchInterpreter",
    "UserPatchInterpreter",
    "GroupPatchInterpreter",
]
