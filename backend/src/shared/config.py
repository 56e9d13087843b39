"""
Configuration module for Lambda handlers.
Loads all environment variables needed by the platform.
"""
import json
import os
from decimal import Decimal


# Default bonus tiers, highest band first
DEFAULT_PAYMENT_TIERS = [
    {'minAccuracy': 90, 'maxAccuracy': 100, 'bonusPercentage': 30, 'bonusAmount': Decimal('228')},
    {'minAccuracy': 80, 'maxAccuracy': 89, 'bonusPercentage': 20, 'bonusAmount': Decimal('152')},
    {'minAccuracy': 70, 'maxAccuracy': 79, 'bonusPercentage': 10, 'bonusAmount': Decimal('76')},
    {'minAccuracy': 0, 'maxAccuracy': 69, 'bonusPercentage': 0, 'bonusAmount': Decimal('0')},
]


def load_payment_tiers(raw: str = None) -> list:
    """
    Parse a JSON tier list (e.g. from the PAYMENT_TIERS env var).
    Numbers are parsed as Decimal so they can be written to DynamoDB.
    Falls back to DEFAULT_PAYMENT_TIERS when nothing is configured.
    """
    if not raw:
        return [dict(tier) for tier in DEFAULT_PAYMENT_TIERS]

    tiers = json.loads(raw, parse_float=Decimal, parse_int=Decimal)
    return [
        {
            'minAccuracy': tier['minAccuracy'],
            'maxAccuracy': tier['maxAccuracy'],
            'bonusPercentage': tier.get('bonusPercentage', Decimal('0')),
            'bonusAmount': tier.get('bonusAmount', Decimal('0')),
        }
        for tier in tiers
    ]


def _env_flag(name: str, default: str = 'false') -> bool:
    return os.environ.get(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """Centralized configuration from environment variables."""

    # AWS Region
    AWS_REGION = os.environ.get('AWS_REGION', 'af-south-1')

    # DynamoDB Tables
    IMAGES_TABLE = os.environ.get('IMAGES_TABLE', '')
    RESPONSES_TABLE = os.environ.get('RESPONSES_TABLE', '')
    CAMPAIGNS_TABLE = os.environ.get('CAMPAIGNS_TABLE', '')
    USERS_TABLE = os.environ.get('USERS_TABLE', '')
    DAILY_REPORTS_TABLE = os.environ.get('DAILY_REPORTS_TABLE', '')
    SETTLEMENTS_TABLE = os.environ.get('SETTLEMENTS_TABLE', '')

    # Logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()

    # EventBridge
    EVENT_BUS_NAME = os.environ.get('EVENT_BUS_NAME', '')

    # Consensus Configuration
    MIN_RESPONSES_FOR_CONSENSUS = int(os.environ.get('MIN_RESPONSES_FOR_CONSENSUS', '5'))
    CONSENSUS_THRESHOLD = float(os.environ.get('CONSENSUS_THRESHOLD', '0.6'))
    REVIEW_QUEUE_LIMIT = int(os.environ.get('REVIEW_QUEUE_LIMIT', '50'))

    # Payment Configuration (amounts in KES)
    DAILY_TASK_TARGET = int(os.environ.get('DAILY_TASK_TARGET', '300'))
    BASE_PAY_AMOUNT = Decimal(os.environ.get('BASE_PAY_AMOUNT', '760'))
    PAYMENT_TIERS = load_payment_tiers(os.environ.get('PAYMENT_TIERS'))
    BONUS_SOURCE = os.environ.get('BONUS_SOURCE', 'fixedAmount')  # fixedAmount | percentage
    STRICT_PAYMENT_TIERS = _env_flag('STRICT_PAYMENT_TIERS')  # reject gaps between bands

    # Daily Reports
    DAILY_REPORT_MODE = os.environ.get('DAILY_REPORT_MODE', 'create-once')  # create-once | refresh
    REPORT_TIMEZONE = os.environ.get('REPORT_TIMEZONE', 'Africa/Nairobi')

    # Work hours (local reporting time)
    WORK_HOURS_START = int(os.environ.get('WORK_HOURS_START', '6'))
    WORK_HOURS_END = int(os.environ.get('WORK_HOURS_END', '18'))
    ENFORCE_WORK_HOURS = _env_flag('ENFORCE_WORK_HOURS')


config = Config()
