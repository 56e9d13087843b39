"""
List Settlements Handler.
GET /settlements

Public: the login screen needs the list before anyone is signed in.
"""
from shared import dynamo
from shared.config import config
from shared.logging import logger, log_event
from shared.utils import error_response, format_response


def handler(event, context):
    log_event(event)

    try:
        settlements = dynamo.scan_all(config.SETTLEMENTS_TABLE)
        settlements.sort(key=lambda s: (s.get('name') or '').lower())

        return format_response(200, {
            'success': True,
            'data': [
                {
                    'id': s['settlementId'],
                    'name': s.get('name'),
                    'location': s.get('location')
                }
                for s in settlements
            ]
        })

    except Exception as e:
        logger.exception(f"Error fetching settlements: {e}")
        return error_response(500, 'Internal server error')
