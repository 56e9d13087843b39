"""
Response Store - DynamoDB persistence for responses, image tallies and daily reports.

Write path for a response (the only place image counters change):
1. Transaction: put Response (fails if the worker already answered) +
   ADD yes/no/total counters on the Image
2. Consistent read of the Image, re-evaluate consensus, apply the one-way latch
   (if this step fails the answer stays recorded and repair_pending_consensus()
   picks the image up on the next scheduled run)

Tables:
- Images:       PK imageId, GSI byCampaign (campaignId)
- Responses:    PK responseId = "<workerId>#<imageId>", GSI byWorker (workerId, submittedAt)
- DailyReports: PK workerId, SK reportDate, GSI byDate (reportDate)
"""
import time
from typing import Dict, List, Optional, Tuple

from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError

from shared import dynamo
from shared.config import config
from shared.consensus import evaluate_consensus, latch_consensus
from shared.logging import logger
from shared.utils import to_decimal, to_timestamp, utc_now

BATCH_GET_LIMIT = 100
MAX_UNPROCESSED_RETRIES = 5


class DuplicateResponseError(Exception):
    """The worker has already answered this image."""


class ImageNotFoundError(LookupError):
    """No image with the given id."""


def response_key(worker_id: str, image_id: str) -> str:
    """Deterministic Response id; makes (worker, image) unique at the table level."""
    return f"{worker_id}#{image_id}"


def _error_code(error: ClientError) -> str:
    return error.response.get('Error', {}).get('Code', '')


# =============================================================================
# IMAGES & RESPONSES
# =============================================================================

def get_image(image_id: str, consistent: bool = False) -> Optional[dict]:
    """Fetch one image record."""
    return dynamo.get_item(config.IMAGES_TABLE, {'imageId': image_id}, consistent=consistent)


def get_images(image_ids: List[str]) -> Dict[str, dict]:
    """
    Fetch many images at once, keyed by imageId.
    Splits into BatchGetItem-sized chunks and retries unprocessed keys.
    """
    unique_ids = list(dict.fromkeys(image_ids))
    images = {}

    for i in range(0, len(unique_ids), BATCH_GET_LIMIT):
        chunk = unique_ids[i:i + BATCH_GET_LIMIT]
        request = {config.IMAGES_TABLE: {'Keys': [{'imageId': image_id} for image_id in chunk]}}

        attempts = 0
        while request:
            response = dynamo.dynamodb.batch_get_item(RequestItems=request)
            for item in response.get('Responses', {}).get(config.IMAGES_TABLE, []):
                images[item['imageId']] = item

            request = response.get('UnprocessedKeys') or {}
            if request:
                attempts += 1
                if attempts > MAX_UNPROCESSED_RETRIES:
                    raise RuntimeError(f"Could not read all images after {attempts} attempts")
                # Back off before retrying throttled keys
                time.sleep(0.1 * (2 ** attempts))

    return images


def get_campaign_images(campaign_id: str) -> List[dict]:
    """All images belonging to a campaign."""
    return dynamo.query_all(
        config.IMAGES_TABLE,
        Key('campaignId').eq(campaign_id),
        index_name='byCampaign'
    )


def get_worker_responses(worker_id: str, start: str, end: str) -> List[dict]:
    """
    Responses a worker submitted between two timestamps (inclusive).

    Args:
        worker_id: The worker's ID
        start: Lower bound, as produced by utils.to_timestamp()
        end: Upper bound, as produced by utils.to_timestamp()
    """
    return dynamo.query_all(
        config.RESPONSES_TABLE,
        Key('workerId').eq(worker_id) & Key('submittedAt').between(start, end),
        index_name='byWorker'
    )


def get_answered_image_ids(worker_id: str) -> set:
    """Every image the worker has ever answered."""
    responses = dynamo.query_all(
        config.RESPONSES_TABLE,
        Key('workerId').eq(worker_id),
        index_name='byWorker'
    )
    return {r['imageId'] for r in responses}


def record_response(worker_id: str, image: dict, answer: bool, submitted_at=None) -> dict:
    """
    Store a worker's answer and update the image's consensus state.

    Args:
        worker_id: The worker's ID
        image: The image record being answered (needs imageId and campaignId)
        answer: True for "yes", False for "no"
        submitted_at: Optional datetime, defaults to now

    Returns:
        dict with the stored 'response' and the image's 'consensus' state

    Raises:
        DuplicateResponseError: the worker already answered this image
        ImageNotFoundError: the image disappeared before the write
    """
    image_id = image['imageId']
    response_id = response_key(worker_id, image_id)
    submitted_at = to_timestamp(submitted_at or utc_now())
    answer_counter = 'yesCount' if answer else 'noCount'

    client = dynamo.dynamodb.meta.client

    try:
        client.transact_write_items(
            TransactItems=[
                {
                    'Put': {
                        'TableName': config.RESPONSES_TABLE,
                        'Item': {
                            'responseId': {'S': response_id},
                            'workerId': {'S': worker_id},
                            'imageId': {'S': image_id},
                            'campaignId': {'S': image.get('campaignId', '')},
                            'answer': {'BOOL': bool(answer)},
                            'submittedAt': {'S': submitted_at}
                        },
                        'ConditionExpression': 'attribute_not_exists(responseId)'
                    }
                },
                {
                    'Update': {
                        'TableName': config.IMAGES_TABLE,
                        'Key': {'imageId': {'S': image_id}},
                        'UpdateExpression': f'ADD totalResponses :one, {answer_counter} :one',
                        'ConditionExpression': 'attribute_exists(imageId)',
                        'ExpressionAttributeValues': {
                            ':one': {'N': '1'}
                        }
                    }
                }
            ]
        )
    except ClientError as e:
        if _error_code(e) != 'TransactionCanceledException':
            raise
        reasons = [r.get('Code') for r in e.response.get('CancellationReasons', [])]
        if reasons and reasons[0] == 'ConditionalCheckFailed':
            raise DuplicateResponseError(f"Worker {worker_id} already answered image {image_id}") from e
        if len(reasons) > 1 and reasons[1] == 'ConditionalCheckFailed':
            raise ImageNotFoundError(image_id) from e
        raise

    logger.info(f"Recorded response {response_id} (answer={answer})")

    # The answer is committed; a failed evaluation is left to repair_pending_consensus()
    try:
        consensus = refresh_consensus(image_id)
    except Exception as e:
        logger.error(f"Consensus evaluation failed for image {image_id} after recording {response_id}: {e}")
        consensus = _pending_view(image)

    return {
        'response': {
            'responseId': response_id,
            'workerId': worker_id,
            'imageId': image_id,
            'campaignId': image.get('campaignId', ''),
            'answer': bool(answer),
            'submittedAt': submitted_at
        },
        'consensus': consensus
    }


def _consensus_view(image: dict, changed: bool) -> dict:
    return {
        'imageId': image['imageId'],
        'totalResponses': int(image.get('totalResponses', 0)),
        'yesCount': int(image.get('yesCount', 0)),
        'noCount': int(image.get('noCount', 0)),
        'groundTruth': image.get('groundTruth'),
        'consensusReached': bool(image.get('consensusReached', False)),
        'confidenceLevel': float(image.get('confidenceLevel', 0)),
        'changed': changed,
        'evaluated': True
    }


def _pending_view(image: dict) -> dict:
    """Consensus state of an image whose latest response has not been evaluated yet."""
    view = _consensus_view(image, changed=False)
    view['totalResponses'] += 1
    view['evaluated'] = False
    return view


def refresh_consensus(image_id: str) -> dict:
    """
    Re-evaluate consensus from the image's current counters and persist it.

    The undecided -> decided transition is a conditional write, so of two
    concurrent evaluations only one sets the ground truth; the other reads
    back the winner's state.
    """
    table = dynamo.dynamodb.Table(config.IMAGES_TABLE)
    image = get_image(image_id, consistent=True)
    if not image:
        raise ImageNotFoundError(image_id)

    evaluation = evaluate_consensus(int(image.get('yesCount', 0)), int(image.get('noCount', 0)))
    state = latch_consensus(image, evaluation)
    confidence = to_decimal(state['confidenceLevel'], '0.01')

    if state['changed']:
        try:
            table.update_item(
                Key={'imageId': image_id},
                UpdateExpression=(
                    'SET groundTruth = :gt, consensusReached = :reached, '
                    'confidenceLevel = :c, consensusReachedAt = :ts'
                ),
                ConditionExpression='attribute_not_exists(consensusReached) OR consensusReached = :undecided',
                ExpressionAttributeValues={
                    ':gt': state['groundTruth'],
                    ':reached': True,
                    ':c': confidence,
                    ':ts': to_timestamp(utc_now()),
                    ':undecided': False
                }
            )
        except ClientError as e:
            if _error_code(e) != 'ConditionalCheckFailedException':
                raise
            logger.info(f"Consensus for image {image_id} was set concurrently, reading it back")
            return _consensus_view(get_image(image_id, consistent=True), changed=False)

        logger.info(
            f"Consensus reached for image {image_id}: groundTruth={state['groundTruth']} "
            f"confidence={state['confidenceLevel']}"
        )
    else:
        # Only write confidence computed from the counts currently stored
        try:
            table.update_item(
                Key={'imageId': image_id},
                UpdateExpression='SET confidenceLevel = :c',
                ConditionExpression='totalResponses = :read_total',
                ExpressionAttributeValues={
                    ':c': confidence,
                    ':read_total': int(image.get('totalResponses', 0))
                }
            )
        except ClientError as e:
            if _error_code(e) != 'ConditionalCheckFailedException':
                raise
            logger.info(f"Image {image_id} received newer responses, skipping stale confidence")

    image.update({
        'groundTruth': state['groundTruth'],
        'consensusReached': state['consensusReached'],
        'confidenceLevel': confidence
    })
    return _consensus_view(image, changed=state['changed'])


def find_pending_consensus_images() -> List[dict]:
    """Images past the minimum-responses gate that are still undecided."""
    return dynamo.scan_all(
        config.IMAGES_TABLE,
        Attr('totalResponses').gte(config.MIN_RESPONSES_FOR_CONSENSUS) & Attr('consensusReached').ne(True)
    )


def repair_pending_consensus() -> dict:
    """
    Re-evaluate every undecided image that has enough responses.

    Catches images whose evaluation failed after their response was committed.
    Images that are still genuinely undecided are re-evaluated and stay undecided.

    Returns:
        dict: {'checked': int, 'reached': [imageId, ...], 'failed': [imageId, ...]}
    """
    images = find_pending_consensus_images()
    reached = []
    failed = []

    for image in images:
        image_id = image['imageId']
        try:
            if refresh_consensus(image_id)['changed']:
                reached.append(image_id)
        except Exception as e:
            logger.error(f"Error re-evaluating consensus for image {image_id}: {e}")
            failed.append(image_id)

    logger.info(f"Consensus repair: checked={len(images)} reached={len(reached)} failed={len(failed)}")
    return {'checked': len(images), 'reached': reached, 'failed': failed}


# =============================================================================
# DAILY REPORTS
# =============================================================================

def get_daily_report(worker_id: str, report_date: str, consistent: bool = False) -> Optional[dict]:
    """Stored report for a worker and reporting day (YYYY-MM-DD), if any."""
    return dynamo.get_item(
        config.DAILY_REPORTS_TABLE,
        {'workerId': worker_id, 'reportDate': report_date},
        consistent=consistent
    )


def create_daily_report(report: dict) -> Tuple[dict, bool]:
    """
    Create a report only if none exists for (workerId, reportDate).

    Returns:
        (report, created) - when another request created it first, the stored
        report is returned with created=False
    """
    table = dynamo.dynamodb.Table(config.DAILY_REPORTS_TABLE)
    try:
        table.put_item(
            Item=report,
            ConditionExpression='attribute_not_exists(workerId)'
        )
        logger.info(f"Created daily report for {report['workerId']} on {report['reportDate']}")
        return report, True
    except ClientError as e:
        if _error_code(e) != 'ConditionalCheckFailedException':
            raise
        logger.info(f"Daily report for {report['workerId']} on {report['reportDate']} already exists")
        return get_daily_report(report['workerId'], report['reportDate'], consistent=True), False


def save_daily_report(report: dict) -> Tuple[dict, bool]:
    """
    Upsert a report unless the stored one has been closed.

    Returns:
        (report, saved) - for a closed day the stored report is returned with saved=False
    """
    table = dynamo.dynamodb.Table(config.DAILY_REPORTS_TABLE)
    try:
        table.put_item(
            Item=report,
            ConditionExpression='attribute_not_exists(workerId) OR closed = :open',
            ExpressionAttributeValues={':open': False}
        )
        return report, True
    except ClientError as e:
        if _error_code(e) != 'ConditionalCheckFailedException':
            raise
        logger.info(f"Daily report for {report['workerId']} on {report['reportDate']} is closed")
        return get_daily_report(report['workerId'], report['reportDate'], consistent=True), False


def mark_daily_report_closed(worker_id: str, report_date: str) -> None:
    """Freeze a report; later refreshes leave it untouched."""
    table = dynamo.dynamodb.Table(config.DAILY_REPORTS_TABLE)
    table.update_item(
        Key={'workerId': worker_id, 'reportDate': report_date},
        UpdateExpression='SET closed = :closed, closedAt = :ts',
        ConditionExpression='attribute_exists(workerId)',
        ExpressionAttributeValues={
            ':closed': True,
            ':ts': to_timestamp(utc_now())
        }
    )


def list_daily_reports_for_date(report_date: str) -> List[dict]:
    """All workers' reports for one reporting day."""
    return dynamo.query_all(
        config.DAILY_REPORTS_TABLE,
        Key('reportDate').eq(report_date),
        index_name='byDate'
    )
