"""
List Users Handler (admin).
GET /admin/users

All users, newest first, with their settlement and response activity.
"""
from shared import dynamo
from shared.auth import get_user_sub, is_admin
from shared.config import config
from shared.credentials import format_phone
from shared.logging import logger, log_event
from shared.utils import error_response, format_response


def summarize_activity(responses: list) -> dict:
    """Response count and latest submission per worker."""
    activity = {}
    for r in responses:
        entry = activity.setdefault(r['workerId'], {'count': 0, 'lastSubmittedAt': ''})
        entry['count'] += 1
        entry['lastSubmittedAt'] = max(entry['lastSubmittedAt'], r.get('submittedAt') or '')
    return activity


def build_user_list(users: list, settlements_by_id: dict, activity: dict) -> list:
    users = sorted(users, key=lambda u: u.get('createdAt') or '', reverse=True)
    result = []

    for user in users:
        phone = user.get('phone') or ''
        joined = (user.get('createdAt') or '')[:10]
        stats = activity.get(user['userId'], {'count': 0, 'lastSubmittedAt': ''})
        settlement = settlements_by_id.get(user.get('settlementId'))

        result.append({
            'id': user['userId'],
            'phone': phone,
            'displayPhone': format_phone(phone),
            'name': user.get('name') or f"User {phone[-4:]}",
            'role': user.get('role'),
            'settlement': settlement.get('name') if settlement else 'Unassigned',
            'settlementId': user.get('settlementId'),
            'tasksCompleted': stats['count'],
            'joinDate': joined,
            'lastActive': stats['lastSubmittedAt'][:10] or joined
        })

    return result


def handler(event, context):
    log_event(event)

    try:
        if not get_user_sub(event):
            return error_response(401, 'Unauthorized')
        if not is_admin(event):
            return error_response(403, 'Admin access required')

        users = dynamo.scan_all(config.USERS_TABLE)
        settlements = {s['settlementId']: s for s in dynamo.scan_all(config.SETTLEMENTS_TABLE)}
        activity = summarize_activity(dynamo.scan_all(config.RESPONSES_TABLE))

        return format_response(200, {
            'success': True,
            'data': build_user_list(users, settlements, activity)
        })

    except Exception as e:
        logger.exception(f"Error fetching users: {e}")
        return error_response(500, 'Internal server error')
