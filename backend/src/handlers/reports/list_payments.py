"""
List Payments Handler (admin).
GET /admin/payments?date=YYYY-MM-DD

Lists every worker's daily report for a reporting day with totals.
"""
from decimal import Decimal
from shared.auth import get_user_sub, is_admin
from shared.logging import logger, log_event
from shared.reporting import get_reporting_day
from shared.response_store import list_daily_reports_for_date
from shared.utils import error_response, format_response, get_query_param, parse_report_date


def summarize_payments(reports: list) -> dict:
    """Totals for the admin payments screen."""
    total_amount = sum((Decimal(str(r.get('totalPay', 0))) for r in reports), Decimal('0'))
    quota_met = sum(1 for r in reports if Decimal(str(r.get('basePay', 0))) > 0)
    bonus_paid = sum(1 for r in reports if Decimal(str(r.get('qualityBonus', 0))) > 0)

    return {
        'totalReports': len(reports),
        'totalAmount': total_amount,
        'quotaMet': quota_met,
        'bonusPaid': bonus_paid,
        'closedReports': sum(1 for r in reports if r.get('closed')),
        'averageEarning': (total_amount / len(reports)).quantize(Decimal('0.01')) if reports else Decimal('0')
    }


def handler(event, context):
    log_event(event)

    try:
        if not get_user_sub(event):
            return error_response(401, 'Unauthorized')
        if not is_admin(event):
            return error_response(403, 'Admin access required')

        raw_date = get_query_param(event, 'date')
        report_date = parse_report_date(raw_date) if raw_date else get_reporting_day()
        if not report_date:
            return error_response(400, 'date must be formatted as YYYY-MM-DD')

        reports = list_daily_reports_for_date(report_date)
        reports.sort(key=lambda r: Decimal(str(r.get('totalPay', 0))), reverse=True)

        return format_response(200, {
            'success': True,
            'data': {
                'date': report_date,
                'payments': [
                    {
                        'workerId': r['workerId'],
                        'tasksCompleted': r['tasksCompleted'],
                        'accuracyScore': r['accuracyScore'],
                        'basePay': r['basePay'],
                        'qualityBonus': r['qualityBonus'],
                        'totalPay': r['totalPay'],
                        'status': 'closed' if r.get('closed') else 'open'
                    }
                    for r in reports
                ],
                'summary': summarize_payments(reports)
            }
        })

    except Exception as e:
        logger.exception(f"Error fetching payments: {e}")
        return error_response(500, 'Internal server error')
