# Overview: Permission gate package.
# Re-exports all public APIs.

from .definitions import (
    ACTION_DEFINITIONS,
    PERMISSION_FLAGS,
    ADD_OR_EDIT_PRODUCT,
    DELETE_PRODUCT,
    RECORD_TRANSACTION,
    VIEW_REPORTS,
    MANAGE_USERS,
)
from .helpers import (
    get_all_action_codes,
    get_action_flag,
    get_action_definition,
)

__all__ = [
    "ACTION_DEFINITIONS",
    "PERMISSION_FLAGS",
    "ADD_OR_EDIT_PRODUCT",
    "DELETE_PRODUCT",
    "RECORD_TRANSACTION",
    "VIEW_REPORTS",
    "MANAGE_USERS",
    "get_all_action_codes",
    "get_action_flag",
    "get_action_definition",
]
