"""
Submit Response Handler.
POST /worker/images/{imageId}/responses
Body: { "answer": true | false }

Records a worker's yes/no answer, updates the image tallies and re-evaluates
consensus. Emits an EventBridge event when this answer settles the image.
"""
import json
import boto3
from shared import dynamo
from shared.auth import get_user_sub, get_settlement_id
from shared.config import config
from shared.logging import logger, log_event
from shared.models import EventType
from shared.reporting import is_within_work_hours
from shared.response_store import (
    DuplicateResponseError,
    ImageNotFoundError,
    get_image,
    record_response
)
from shared.utils import error_response, format_response, get_path_param, parse_body

events = boto3.client('events', region_name=config.AWS_REGION)


def handler(event, context):
    log_event(event)

    try:
        worker_id = get_user_sub(event)
        if not worker_id:
            return error_response(401, 'Unauthorized')

        image_id = get_path_param(event, 'imageId')
        body = parse_body(event)
        answer = body.get('answer')

        if not image_id or not isinstance(answer, bool):
            return error_response(400, 'Image ID and answer (boolean) are required')

        if config.ENFORCE_WORK_HOURS and not is_within_work_hours():
            return error_response(403, 'Tasks are only available during work hours')

        image = get_image(image_id)
        if not image:
            return error_response(404, 'Image not found')

        campaign = dynamo.get_item(config.CAMPAIGNS_TABLE, {'campaignId': image['campaignId']})
        if not campaign or not campaign.get('isActive'):
            return error_response(400, 'Campaign is not active')

        settlement_id = get_settlement_id(event)
        if not settlement_id:
            return error_response(400, 'User settlement not found')

        if settlement_id not in (campaign.get('settlementIds') or []):
            return error_response(403, 'You are not assigned to this campaign')

        try:
            result = record_response(worker_id, image, answer)
        except DuplicateResponseError:
            return error_response(409, 'You have already responded to this image')
        except ImageNotFoundError:
            return error_response(404, 'Image not found')

        consensus = result['consensus']
        if consensus['changed']:
            emit_consensus_event(consensus, image['campaignId'])

        return format_response(200, {
            'success': True,
            'data': {
                'responseId': result['response']['responseId'],
                'message': 'Response recorded successfully',
                'consensus': {
                    'consensusReached': consensus['consensusReached'],
                    'totalResponses': consensus['totalResponses']
                }
            }
        })

    except Exception as e:
        logger.exception(f"Error recording response: {e}")
        return error_response(500, 'Internal server error')


def emit_consensus_event(consensus: dict, campaign_id: str):
    """Send a consensus-reached event to EventBridge (non-critical)."""
    if not config.EVENT_BUS_NAME:
        return

    try:
        events.put_events(
            Entries=[{
                'Source': 'dpw.consensus',
                'DetailType': EventType.CONSENSUS_REACHED,
                'EventBusName': config.EVENT_BUS_NAME,
                'Detail': json.dumps({
                    'imageId': consensus['imageId'],
                    'campaignId': campaign_id,
                    'groundTruth': consensus['groundTruth'],
                    'confidenceLevel': consensus['confidenceLevel'],
                    'totalResponses': consensus['totalResponses']
                })
            }]
        )
    except Exception as e:
        logger.warning(f"Failed to send EventBridge event for image {consensus['imageId']}: {e}")
