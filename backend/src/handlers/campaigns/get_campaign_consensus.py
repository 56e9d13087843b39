"""
Campaign Consensus Handler (admin).
GET /admin/campaigns/{campaignId}/consensus

Summarizes consensus progress for a campaign and returns a review queue:
images that have cleared the minimum-responses gate without reaching
consensus, least confident first.
"""
from shared import dynamo
from shared.auth import get_user_sub, is_admin
from shared.config import config
from shared.consensus import consensus_status
from shared.logging import logger, log_event
from shared.models import ConsensusStatus
from shared.response_store import get_campaign_images
from shared.utils import error_response, format_response, get_path_param


def build_review_queue(images: list, limit: int) -> list:
    """Undecided images ordered by confidence (ascending), then by response count (descending)."""
    undecided = [i for i in images if consensus_status(i) == ConsensusStatus.UNDECIDED]
    undecided.sort(key=lambda i: (float(i.get('confidenceLevel', 0)), -int(i.get('totalResponses', 0))))
    return [
        {
            'imageId': i['imageId'],
            'url': i.get('url'),
            'yesCount': int(i.get('yesCount', 0)),
            'noCount': int(i.get('noCount', 0)),
            'totalResponses': int(i.get('totalResponses', 0)),
            'confidenceLevel': float(i.get('confidenceLevel', 0))
        }
        for i in undecided[:limit]
    ]


def summarize_consensus(images: list) -> dict:
    counts = {
        ConsensusStatus.AWAITING_RESPONSES: 0,
        ConsensusStatus.UNDECIDED: 0,
        ConsensusStatus.REACHED: 0
    }
    yes_labels = 0
    total_responses = 0

    for image in images:
        status = consensus_status(image)
        counts[status] += 1
        total_responses += int(image.get('totalResponses', 0))
        if status == ConsensusStatus.REACHED and image.get('groundTruth'):
            yes_labels += 1

    total_images = len(images)
    reached = counts[ConsensusStatus.REACHED]

    return {
        'totalImages': total_images,
        'totalResponses': total_responses,
        'consensusReached': reached,
        'undecided': counts[ConsensusStatus.UNDECIDED],
        'awaitingResponses': counts[ConsensusStatus.AWAITING_RESPONSES],
        'groundTruthYes': yes_labels,
        'groundTruthNo': reached - yes_labels,
        'completionRate': round(reached / total_images * 100, 1) if total_images else 0.0
    }


def handler(event, context):
    log_event(event)

    try:
        if not get_user_sub(event):
            return error_response(401, 'Unauthorized')
        if not is_admin(event):
            return error_response(403, 'Admin access required')

        campaign_id = get_path_param(event, 'campaignId')
        if not campaign_id:
            return error_response(400, 'Missing campaignId')

        campaign = dynamo.get_item(config.CAMPAIGNS_TABLE, {'campaignId': campaign_id})
        if not campaign:
            return error_response(404, 'Campaign not found')

        images = get_campaign_images(campaign_id)

        return format_response(200, {
            'success': True,
            'data': {
                'campaignId': campaign_id,
                'title': campaign.get('title'),
                'summary': summarize_consensus(images),
                'reviewQueue': build_review_queue(images, config.REVIEW_QUEUE_LIMIT)
            }
        })

    except Exception as e:
        logger.exception(f"Error fetching consensus for campaign: {e}")
        return error_response(500, 'Internal server error')
