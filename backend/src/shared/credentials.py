"""
Credential verification for phone-based login.

Workers log in with their phone number and the settlement they belong to.
There is no password: the check only confirms that the phone maps to a known
user and that the settlement matches.
"""
import re
from typing import Optional

from boto3.dynamodb.conditions import Key

from shared import dynamo
from shared.config import config
from shared.logging import logger
from shared.models import Role


class CredentialError(Exception):
    """Login rejected; the message is safe to show to the user."""


def _digits(phone: str) -> str:
    return re.sub(r'\D', '', phone or '')


def is_valid_kenyan_phone(phone: str) -> bool:
    """
    Accept international (+254XXXXXXXXX) or local (07XXXXXXXX / 01XXXXXXXX) numbers.
    """
    cleaned = _digits(phone)
    if cleaned.startswith('254') and len(cleaned) == 12:
        return True
    return len(cleaned) == 10 and cleaned[:2] in ('07', '01')


def normalize_phone(phone: str) -> str:
    """Convert a valid Kenyan number to E.164 (+254...)."""
    cleaned = _digits(phone)
    if cleaned.startswith('0'):
        cleaned = '254' + cleaned[1:]
    return '+' + cleaned


def format_phone(phone: str) -> str:
    """Human-friendly rendering: +254 712 345 678 or 0712 345 678."""
    cleaned = _digits(phone)
    if cleaned.startswith('254') and len(cleaned) == 12:
        return f"+{cleaned[:3]} {cleaned[3:6]} {cleaned[6:9]} {cleaned[9:]}"
    if cleaned.startswith('0') and len(cleaned) == 10:
        return f"{cleaned[:4]} {cleaned[4:7]} {cleaned[7:]}"
    return phone


class CredentialVerifier:
    """Base class for login checks."""

    def verify(self, credentials: dict) -> dict:
        """
        Check submitted credentials.

        Returns:
            The session profile for the authenticated user

        Raises:
            CredentialError: if the credentials are rejected
        """
        raise NotImplementedError


class PhoneSettlementVerifier(CredentialVerifier):
    """Phone number + settlement check against the Users table."""

    def find_user_by_phone(self, phone: str) -> Optional[dict]:
        users = dynamo.query_all(
            config.USERS_TABLE,
            Key('phone').eq(phone),
            index_name='byPhone'
        )
        return users[0] if users else None

    def verify(self, credentials: dict) -> dict:
        phone = (credentials or {}).get('phone')
        settlement_id = (credentials or {}).get('settlementId') or None

        if not phone:
            raise CredentialError('Phone number is required')
        if not is_valid_kenyan_phone(phone):
            raise CredentialError('Please enter a valid Kenyan phone number')

        normalized = normalize_phone(phone)
        user = self.find_user_by_phone(normalized)
        if not user:
            raise CredentialError('No account found with this phone number')

        role = user.get('role', Role.WORKER)
        user_settlement = user.get('settlementId')

        if role == Role.WORKER:
            if not settlement_id:
                raise CredentialError('Please select your settlement')
            if user_settlement != settlement_id:
                raise CredentialError('Selected settlement does not match your account')

        # System-wide admins have no settlement and may pick any
        if role == Role.ADMIN and settlement_id and user_settlement:
            if user_settlement != settlement_id:
                raise CredentialError('Selected settlement does not match your admin account')

        logger.info(f"Verified login for user {user['userId']} ({role})")

        return {
            'id': user['userId'],
            'name': user.get('name') or f"User {normalized}",
            'phone': normalized,
            'role': role,
            'settlementId': user_settlement,
            'settlementName': user.get('settlementName')
        }
