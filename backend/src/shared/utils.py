"""
Common utility functions for Lambda handlers.
"""
import json
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict

TIMESTAMP_FORMAT = '%Y-%m-%dT%H:%M:%S.%fZ'


class DecimalEncoder(json.JSONEncoder):
    """
    JSON encoder for items read through the boto3 resource API.

    Numbers come back as Decimal (whole values are sent as ints, so counts and
    KES amounts stay integral) and string sets come back as Python sets.
    """

    def default(self, o):
        if isinstance(o, Decimal):
            return int(o) if o == o.to_integral_value() else float(o)
        if isinstance(o, (set, frozenset)):
            return sorted(o)
        return super().default(o)


def format_response(
    status_code: int,
    body: Any,
    headers: Dict[str, str] = None
) -> Dict[str, Any]:
    """
    Format a standard API Gateway response with CORS headers.

    Args:
        status_code: HTTP status code
        body: Response body (will be JSON serialized)
        headers: Additional headers to include

    Returns:
        API Gateway response dict
    """
    default_headers = {
        'Access-Control-Allow-Origin': '*',
        'Access-Control-Allow-Credentials': True,
        'Content-Type': 'application/json'
    }

    if headers:
        default_headers.update(headers)

    return {
        'statusCode': status_code,
        'headers': default_headers,
        'body': json.dumps(body, cls=DecimalEncoder)
    }


def error_response(status_code: int, message: str) -> Dict[str, Any]:
    """Shorthand for a failed API call."""
    return format_response(status_code, {'success': False, 'message': message})


def parse_body(event: dict) -> dict:
    """
    Safely parse JSON body from API Gateway event.

    Args:
        event: API Gateway Lambda proxy event

    Returns:
        Parsed body dict or empty dict if invalid
    """
    try:
        body = event.get('body') or '{}'
        if isinstance(body, str):
            parsed = json.loads(body)
            return parsed if isinstance(parsed, dict) else {}
        return body or {}
    except (json.JSONDecodeError, TypeError):
        return {}


def get_path_param(event: dict, param_name: str) -> str:
    """Extract path parameter from event."""
    try:
        return event['pathParameters'][param_name]
    except (KeyError, TypeError):
        return None


def get_query_param(event: dict, param_name: str, default: str = None) -> str:
    """Extract query string parameter from event."""
    try:
        params = event.get('queryStringParameters') or {}
        return params.get(param_name, default)
    except (KeyError, TypeError, AttributeError):
        return default


def utc_now() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


def to_timestamp(moment: datetime) -> str:
    """
    Render a datetime as a fixed-width UTC string.
    Fixed width keeps lexicographic order equal to time order, which the
    byWorker index relies on for day-range queries.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def to_decimal(value: Any, places: str = None) -> Decimal:
    """Convert a float/int to Decimal for DynamoDB, optionally quantized."""
    result = Decimal(str(value))
    if places:
        result = result.quantize(Decimal(places))
    return result


def parse_report_date(value: str) -> str:
    """Return the date string if it is a valid YYYY-MM-DD, else None."""
    try:
        return datetime.strptime(value, '%Y-%m-%d').date().isoformat()
    except (TypeError, ValueError):
        return None
