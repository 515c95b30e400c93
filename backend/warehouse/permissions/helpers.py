# Overview: Utility functions for action lookups and validation.

from .definitions import ACTION_DEFINITIONS


def get_all_action_codes():
    """Get list of all action codes."""
    return [action[0] for action in ACTION_DEFINITIONS]


def get_action_flag(code):
    """User flag granting the action, or None when only the admin may perform it."""
    for action in ACTION_DEFINITIONS:
        if action[0] == code:
            return action[3]
    raise KeyError(f"Unknown action: {code}")


def get_action_definition(code):
    """Get full definition for an action code."""
    for action in ACTION_DEFINITIONS:
        if action[0] == code:
            return {
                "code": action[0],
                "name": action[1],
                "description": action[2],
                "flag": action[3],
                "admin_only": action[3] is None,
            }
    return None
