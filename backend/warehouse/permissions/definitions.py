"""
Permission Gate Constants

Every mutating operation names one action. Actions with a flag are granted
by that flag on the User row; actions with no flag are admin-only. The admin
identity (Config.ADMIN_EMAIL) passes every check.
"""

# =============================================================================
# ACTIONS
# =============================================================================

ADD_OR_EDIT_PRODUCT = "ADD_OR_EDIT_PRODUCT"
DELETE_PRODUCT = "DELETE_PRODUCT"
RECORD_TRANSACTION = "RECORD_TRANSACTION"
VIEW_REPORTS = "VIEW_REPORTS"
MANAGE_USERS = "MANAGE_USERS"


# =============================================================================
# ACTION DEFINITIONS
# =============================================================================

# Each action is defined as: (code, name, description, flag)
# flag None means admin-only.
ACTION_DEFINITIONS = [
    (
        ADD_OR_EDIT_PRODUCT,
        "Add or Edit Products",
        "Create products and edit their stock quantities",
        "can_add_products",
    ),
    (
        DELETE_PRODUCT,
        "Delete Products",
        "Delete products that have no stock transactions",
        None,
    ),
    (
        RECORD_TRANSACTION,
        "Record Transactions",
        "Record inbound and outbound stock movements",
        "can_manage_transactions",
    ),
    (
        VIEW_REPORTS,
        "View Reports",
        "View movement reports and export them",
        "can_view_reports",
    ),
    (
        MANAGE_USERS,
        "Manage Users",
        "Create users, change their permissions, delete them",
        None,
    ),
]

# Stored permission flags, in display order
PERMISSION_FLAGS = (
    "can_add_products",
    "can_delete_products",
    "can_manage_transactions",
    "can_view_reports",
)
