"""
Current Tasks Handler.
GET /worker/tasks/current?limit=20

Finds the active campaign assigned to the worker's settlement and returns
the images the worker has not answered yet, oldest first, with progress.
"""
from boto3.dynamodb.conditions import Attr
from shared import dynamo
from shared.auth import get_user_sub, get_settlement_id
from shared.config import config
from shared.logging import logger, log_event
from shared.reporting import is_within_work_hours
from shared.response_store import get_answered_image_ids, get_campaign_images
from shared.utils import error_response, format_response, get_query_param

DEFAULT_BATCH_SIZE = 20
MAX_BATCH_SIZE = 100


def find_active_campaign(settlement_id: str):
    """Earliest-created active campaign assigned to the settlement."""
    campaigns = dynamo.scan_all(
        config.CAMPAIGNS_TABLE,
        Attr('isActive').eq(True) & Attr('settlementIds').contains(settlement_id)
    )
    if not campaigns:
        return None
    return sorted(campaigns, key=lambda c: c.get('createdAt', ''))[0]


def handler(event, context):
    log_event(event)

    try:
        worker_id = get_user_sub(event)
        if not worker_id:
            return error_response(401, 'Unauthorized')

        settlement_id = get_settlement_id(event)
        if not settlement_id:
            return error_response(400, 'User settlement not found')

        if config.ENFORCE_WORK_HOURS and not is_within_work_hours():
            return error_response(403, 'Tasks are only available during work hours')

        try:
            limit = int(get_query_param(event, 'limit', DEFAULT_BATCH_SIZE))
        except (TypeError, ValueError):
            limit = DEFAULT_BATCH_SIZE
        limit = max(1, min(limit, MAX_BATCH_SIZE))

        campaign = find_active_campaign(settlement_id)
        if not campaign:
            return error_response(404, 'No active campaigns available')

        images = get_campaign_images(campaign['campaignId'])
        answered = get_answered_image_ids(worker_id)

        pending = sorted(
            (i for i in images if i['imageId'] not in answered),
            key=lambda i: i.get('createdAt', '')
        )
        if not pending:
            return error_response(404, 'All tasks completed for today')

        total_images = len(images)
        completed_images = total_images - len(pending)

        return format_response(200, {
            'success': True,
            'data': {
                'campaign': {
                    'id': campaign['campaignId'],
                    'title': campaign.get('title'),
                    'question': campaign.get('question')
                },
                'images': [
                    {
                        'id': i['imageId'],
                        'url': i.get('url'),
                        'campaignId': i['campaignId']
                    }
                    for i in pending[:limit]
                ],
                'currentImageIndex': 0,
                'totalImages': total_images,
                'completedImages': completed_images,
                'progress': round(completed_images / total_images * 100) if total_images else 0
            }
        })

    except Exception as e:
        logger.exception(f"Error fetching current tasks: {e}")
        return error_response(500, 'Internal server error')
