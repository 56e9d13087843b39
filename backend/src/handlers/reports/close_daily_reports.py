"""
Close Daily Reports Handler.
Triggered by EventBridge scheduler after the work day ends.

Computes the final report for every worker for the previous reporting day
(or the day given as {"date": "YYYY-MM-DD"}) and marks it closed, so later
reads return a stable pay figure.

Undecided images that already have enough responses are re-evaluated first,
so an evaluation that failed at submission time still counts towards accuracy.
"""
import json
from datetime import timedelta
import boto3
from boto3.dynamodb.conditions import Attr
from shared import dynamo
from shared.config import config
from shared.logging import logger
from shared.models import EventType, Role
from shared.payment import validate_payment_tiers
from shared.reporting import close_daily_report, get_reporting_day
from shared.response_store import repair_pending_consensus
from shared.utils import DecimalEncoder, utc_now

events = boto3.client('events', region_name=config.AWS_REGION)

# PutEvents accepts at most 10 entries per call
EVENT_BATCH_SIZE = 10

validate_payment_tiers(config.PAYMENT_TIERS, strict=config.STRICT_PAYMENT_TIERS)


def handler(event, context):
    report_date = (event or {}).get('date') or get_reporting_day(utc_now() - timedelta(days=1))
    logger.info(f"Closing daily reports for {report_date}...")

    repair = repair_pending_consensus()

    workers = dynamo.scan_all(config.USERS_TABLE, Attr('role').eq(Role.WORKER))
    logger.info(f"Found {len(workers)} workers")

    closed_reports = []
    failed = []

    for worker in workers:
        worker_id = worker['userId']
        try:
            report = close_daily_report(worker_id, report_date)
            if report.get('closed'):
                closed_reports.append(report)
        except Exception as e:
            logger.error(f"Error closing report for {worker_id} on {report_date}: {e}")
            failed.append(worker_id)

    emit_report_closed_events(closed_reports)

    return {
        'date': report_date,
        'consensusRepaired': len(repair['reached']),
        'checked': len(workers),
        'closed': len(closed_reports),
        'failed': failed
    }


def emit_report_closed_events(reports: list):
    """Announce closed reports on EventBridge so payouts can be scheduled (non-critical)."""
    if not config.EVENT_BUS_NAME or not reports:
        return

    entries = [
        {
            'Source': 'dpw.reports',
            'DetailType': EventType.DAILY_REPORT_CLOSED,
            'EventBusName': config.EVENT_BUS_NAME,
            'Detail': json.dumps({
                'workerId': r['workerId'],
                'reportDate': r['reportDate'],
                'tasksCompleted': r.get('tasksCompleted', 0),
                'accuracyScore': r.get('accuracyScore', 0),
                'totalPay': r.get('totalPay', 0)
            }, cls=DecimalEncoder)
        }
        for r in reports
    ]

    for i in range(0, len(entries), EVENT_BATCH_SIZE):
        try:
            events.put_events(Entries=entries[i:i + EVENT_BATCH_SIZE])
        except Exception as e:
            logger.warning(f"Failed to send {EventType.DAILY_REPORT_CLOSED} events: {e}")
