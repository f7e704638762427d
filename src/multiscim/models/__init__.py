from .tenant import Tenant
from .user import User
from .group import Group
from .api_token import APIToken

__all__ = [
    "Tenant",
    "User",
    "Group",
    "APIToken",
]
