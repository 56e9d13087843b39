"""
Logging utilities for Lambda handlers.
"""
import logging
import json

from shared.config import config

logger = logging.getLogger('dpw')
logger.setLevel(getattr(logging, config.LOG_LEVEL, logging.INFO))

# Lambda reuses the module between invocations
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    ))
    logger.addHandler(handler)


def summarize_event(event: dict) -> dict:
    """
    The parts of a Lambda event worth logging.

    API Gateway events are reduced to route, parameters and caller id: bodies
    carry phone numbers and answers, headers carry tokens. Scheduled events
    are logged without their body as well.
    """
    if 'httpMethod' not in event:
        return {k: v for k, v in event.items() if k not in ('body', 'headers')}

    try:
        caller = event['requestContext']['authorizer']['claims'].get('sub')
    except (KeyError, TypeError, AttributeError):
        caller = None

    return {
        'route': f"{event.get('httpMethod')} {event.get('resource') or event.get('path')}",
        'pathParameters': event.get('pathParameters'),
        'queryStringParameters': event.get('queryStringParameters'),
        'caller': caller
    }


def log_event(event: dict) -> None:
    """Log incoming Lambda event for debugging."""
    try:
        logger.info(f"Lambda event: {json.dumps(summarize_event(event or {}), default=str)}")
    except Exception as e:
        logger.warning(f"Could not log event: {e}")
