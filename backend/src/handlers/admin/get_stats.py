"""
Admin Dashboard Stats Handler.
GET /admin/stats

Headline numbers for the admin dashboard: workers, campaigns, responses,
image completion, and activity over the last RECENT_DAYS days.
"""
from datetime import timedelta
from decimal import Decimal
from boto3.dynamodb.conditions import Attr
from shared import dynamo
from shared.auth import get_user_sub, is_admin
from shared.config import config
from shared.logging import logger, log_event
from shared.models import Role
from shared.utils import error_response, format_response, to_timestamp, utc_now

RECENT_DAYS = 30


def build_admin_stats(
    workers: list,
    campaigns: list,
    images: list,
    recent_responses: int,
    recent_reports: list,
    since: str
) -> dict:
    """
    Aggregate dashboard figures.

    Total responses are summed from the image counters, which equal the number
    of stored responses.
    """
    total_images = len(images)
    completed_images = sum(1 for i in images if i.get('consensusReached'))
    total_responses = sum(int(i.get('totalResponses', 0)) for i in images)
    new_workers = sum(1 for w in workers if (w.get('createdAt') or '') >= since)
    recent_payouts = sum((Decimal(str(r.get('totalPay', 0))) for r in recent_reports), Decimal('0'))

    return {
        'activeWorkers': len(workers),
        'newWorkers': new_workers,
        'totalCampaigns': len(campaigns),
        'activeCampaigns': sum(1 for c in campaigns if c.get('isActive')),
        'totalResponses': total_responses,
        'recentResponses': recent_responses,
        'totalImages': total_images,
        'completedImages': completed_images,
        'completionRate': round(completed_images / total_images * 100, 1) if total_images else 0.0,
        'recentPayouts': recent_payouts,
        'recentDays': RECENT_DAYS
    }


def handler(event, context):
    log_event(event)

    try:
        if not get_user_sub(event):
            return error_response(401, 'Unauthorized')
        if not is_admin(event):
            return error_response(403, 'Admin access required')

        since_moment = utc_now() - timedelta(days=RECENT_DAYS)
        since = to_timestamp(since_moment)

        workers = dynamo.scan_all(config.USERS_TABLE, Attr('role').eq(Role.WORKER))
        campaigns = dynamo.scan_all(config.CAMPAIGNS_TABLE)
        images = dynamo.scan_all(config.IMAGES_TABLE)
        recent_responses = dynamo.scan_all(config.RESPONSES_TABLE, Attr('submittedAt').gte(since))
        recent_reports = dynamo.scan_all(
            config.DAILY_REPORTS_TABLE,
            Attr('reportDate').gte(since_moment.date().isoformat())
        )

        stats = build_admin_stats(workers, campaigns, images, len(recent_responses), recent_reports, since)

        return format_response(200, {
            'success': True,
            'data': {'summary': stats}
        })

    except Exception as e:
        logger.exception(f"Error fetching admin stats: {e}")
        return error_response(500, 'Internal server error')
