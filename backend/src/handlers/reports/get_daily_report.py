"""
Daily Report Handler.
GET /worker/daily-report?date=YYYY-MM-DD&workerId=...

Returns the worker's pay summary for a reporting day (today by default).
Admins may pass workerId to view any worker's report.
"""
from shared.auth import get_user_sub, is_admin
from shared.config import config
from shared.logging import logger, log_event
from shared.payment import validate_payment_tiers
from shared.reporting import get_or_create_daily_report
from shared.utils import error_response, format_response, get_query_param, parse_report_date

# Fail at cold start rather than paying from a broken tier table
validate_payment_tiers(config.PAYMENT_TIERS, strict=config.STRICT_PAYMENT_TIERS)


def handler(event, context):
    log_event(event)

    try:
        user_id = get_user_sub(event)
        if not user_id:
            return error_response(401, 'Unauthorized')

        worker_id = get_query_param(event, 'workerId') or user_id
        if worker_id != user_id and not is_admin(event):
            return error_response(403, 'Admin access required')

        report_date = None
        raw_date = get_query_param(event, 'date')
        if raw_date:
            report_date = parse_report_date(raw_date)
            if not report_date:
                return error_response(400, 'date must be formatted as YYYY-MM-DD')

        report = get_or_create_daily_report(worker_id, report_date)

        return format_response(200, {
            'success': True,
            'data': {
                'workerId': report['workerId'],
                'date': report['reportDate'],
                'tasksCompleted': report['tasksCompleted'],
                'targetTasks': report['targetTasks'],
                'accuracyScore': report['accuracyScore'],
                'validatedResponses': report.get('validatedResponses', 0),
                'basePay': report['basePay'],
                'qualityBonus': report['qualityBonus'],
                'totalPay': report['totalPay'],
                'tier': report.get('tier'),
                'closed': report.get('closed', False)
            }
        })

    except Exception as e:
        logger.exception(f"Error fetching daily report: {e}")
        return error_response(500, 'Internal server error')
