"""
Authentication utilities for extracting user info from Cognito tokens.
"""
from typing import Optional

from shared.models import Role


def _claims(event: dict) -> dict:
    try:
        return event['requestContext']['authorizer']['claims'] or {}
    except (KeyError, TypeError):
        return {}


def get_user_sub(event: dict) -> Optional[str]:
    """
    Extract user sub (unique ID) from Cognito authorizer claims.

    Args:
        event: API Gateway Lambda proxy event

    Returns:
        User sub string or None if not authenticated
    """
    return _claims(event).get('sub')


def get_settlement_id(event: dict) -> Optional[str]:
    """Extract the worker's settlement from the custom claim set at login."""
    return _claims(event).get('custom:settlementId') or None


def get_user_groups(event: dict) -> list:
    """Extract user groups (worker, admin) from Cognito claims."""
    groups = _claims(event).get('cognito:groups', '')
    if isinstance(groups, str):
        return groups.split(',') if groups else []
    return groups or []


def get_user_role(event: dict) -> str:
    """Resolve the platform role; admins are identified by group membership."""
    if 'admin' in get_user_groups(event):
        return Role.ADMIN
    return _claims(event).get('custom:role', Role.WORKER)


def is_admin(event: dict) -> bool:
    """Check if user belongs to admin group."""
    return get_user_role(event) == Role.ADMIN
