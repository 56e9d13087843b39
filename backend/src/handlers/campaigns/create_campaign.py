"""
Create Campaign Handler (admin).
POST /admin/campaigns
Body: {
    "title": "...", "question": "Is there a pothole in this image?",
    "imageUrls": ["https://..."], "settlementIds": ["..."],
    "startDate": "2026-10-20", "endDate": "2026-11-20", "isActive": true
}

Provisions the campaign and one Image record per URL with zeroed tallies.
"""
import uuid
from shared import dynamo
from shared.auth import get_user_sub, is_admin
from shared.config import config
from shared.logging import logger, log_event
from shared.utils import error_response, format_response, parse_body, to_timestamp, utc_now


def build_image_items(campaign_id: str, image_urls: list, timestamp: str) -> list:
    """Image records for a new campaign; consensus starts undecided."""
    return [
        {
            'imageId': str(uuid.uuid4()),
            'campaignId': campaign_id,
            'url': url,
            'totalResponses': 0,
            'yesCount': 0,
            'noCount': 0,
            'groundTruth': None,
            'consensusReached': False,
            'confidenceLevel': 0,
            'createdAt': timestamp
        }
        for url in image_urls
    ]


def handler(event, context):
    log_event(event)

    try:
        admin_id = get_user_sub(event)
        if not admin_id:
            return error_response(401, 'Unauthorized')
        if not is_admin(event):
            return error_response(403, 'Admin access required')

        # Anything that is not a JSON object parses to {} and fails the checks below
        body = parse_body(event)

        title = body.get('title')
        question = body.get('question')
        image_urls = body.get('imageUrls', [])
        settlement_ids = body.get('settlementIds', [])

        if not isinstance(title, str) or not isinstance(question, str) or not title.strip() or not question.strip():
            return error_response(400, 'Title and question are required')
        if not isinstance(image_urls, list):
            return error_response(400, 'imageUrls must be a list of image URLs')
        image_urls = [u.strip() for u in image_urls if isinstance(u, str) and u.strip()]
        if not image_urls:
            return error_response(400, 'No images provided')
        if not settlement_ids or not isinstance(settlement_ids, list):
            return error_response(400, 'At least one settlement must be assigned')
        if not all(isinstance(s, str) and s for s in settlement_ids):
            return error_response(400, 'Settlement IDs must be non-empty strings')

        campaign_id = str(uuid.uuid4())
        timestamp = to_timestamp(utc_now())

        images = build_image_items(campaign_id, image_urls, timestamp)

        campaign = {
            'campaignId': campaign_id,
            'title': title.strip(),
            'question': question.strip(),
            'isActive': bool(body.get('isActive', True)),
            'settlementIds': list(dict.fromkeys(settlement_ids)),
            'startDate': body.get('startDate') or timestamp,
            'createdBy': admin_id,
            'createdAt': timestamp,
            'imageCount': len(images)
        }
        if body.get('endDate'):
            campaign['endDate'] = body['endDate']

        # Images first: an active campaign must never point at missing images
        if not dynamo.batch_write_items(config.IMAGES_TABLE, images, key_names=['imageId']):
            return error_response(500, 'Failed to save images')

        if not dynamo.batch_write_items(config.CAMPAIGNS_TABLE, [campaign], key_names=['campaignId']):
            return error_response(500, 'Failed to save campaign')

        logger.info(f"Created campaign {campaign_id} with {len(images)} images for {len(campaign['settlementIds'])} settlements")

        return format_response(201, {
            'success': True,
            'message': f'Created campaign with {len(images)} images',
            'data': {
                'campaignId': campaign_id,
                'imageCount': len(images),
                'settlementIds': campaign['settlementIds'],
                'isActive': campaign['isActive']
            }
        })

    except Exception as e:
        logger.exception(f"Error creating campaign: {e}")
        return error_response(500, 'Internal server error')
