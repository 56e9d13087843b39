"""
DynamoDB helpers: one shared resource, batch writes and fully paginated reads.
"""
import boto3
from typing import List, Dict, Any, Optional
from shared.config import config
from shared.logging import logger

dynamodb = boto3.resource('dynamodb', region_name=config.AWS_REGION)


def batch_write_items(
    table_name: str,
    items: List[Dict[str, Any]],
    key_names: Optional[List[str]] = None
) -> bool:
    """
    Put many items through the table's batch writer (25 per request, unprocessed
    items resent by boto3).

    Args:
        table_name: Name of the DynamoDB table
        items: Items to put
        key_names: Primary key attributes; when given, a later item with the same
            key replaces an earlier one in the same batch instead of failing it

    Returns:
        True once every item is written, False if the batch failed (error logged)
    """
    if not items:
        return True

    try:
        table = dynamodb.Table(table_name)

        with table.batch_writer(overwrite_by_pkeys=key_names) as batch:
            for item in items:
                batch.put_item(Item=item)

        logger.info(f"Wrote {len(items)} items to {table_name}")
        return True

    except Exception as e:
        logger.error(f"Error batch writing {len(items)} items to {table_name}: {e}")
        return False


def query_all(
    table_name: str,
    key_condition: Any,
    index_name: Optional[str] = None,
    filter_expression: Optional[Any] = None,
    scan_forward: bool = True
) -> List[Dict[str, Any]]:
    """
    Query a DynamoDB table or index, following LastEvaluatedKey until exhausted.

    Args:
        table_name: Name of the DynamoDB table
        key_condition: Key condition expression
        index_name: Optional GSI name
        filter_expression: Optional filter expression
        scan_forward: True for ascending, False for descending

    Returns:
        List of items matching the query
    """
    table = dynamodb.Table(table_name)

    query_params = {
        'KeyConditionExpression': key_condition,
        'ScanIndexForward': scan_forward
    }
    if index_name:
        query_params['IndexName'] = index_name
    if filter_expression is not None:
        query_params['FilterExpression'] = filter_expression

    items = []
    while True:
        response = table.query(**query_params)
        items.extend(response.get('Items', []))
        last_key = response.get('LastEvaluatedKey')
        if not last_key:
            break
        query_params['ExclusiveStartKey'] = last_key

    return items


def scan_all(table_name: str, filter_expression: Optional[Any] = None) -> List[Dict[str, Any]]:
    """Scan a whole table (admin and scheduled jobs only)."""
    table = dynamodb.Table(table_name)

    scan_params = {}
    if filter_expression is not None:
        scan_params['FilterExpression'] = filter_expression

    items = []
    while True:
        response = table.scan(**scan_params)
        items.extend(response.get('Items', []))
        last_key = response.get('LastEvaluatedKey')
        if not last_key:
            break
        scan_params['ExclusiveStartKey'] = last_key

    return items


def get_item(table_name: str, key: Dict[str, Any], consistent: bool = False) -> Optional[Dict[str, Any]]:
    """Get a single item from DynamoDB."""
    table = dynamodb.Table(table_name)
    response = table.get_item(Key=key, ConsistentRead=consistent)
    return response.get('Item')
