"""
Daily reporting - turns a worker's day of responses into a pay record.

A reporting day is a calendar day in REPORT_TIMEZONE. Accuracy only counts
"validated" responses: answers to images whose consensus had been reached
when the report was computed. Undecided images are left out of both the
numerator and the denominator.
"""
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional
from zoneinfo import ZoneInfo

from shared import response_store
from shared.config import config
from shared.logging import logger
from shared.models import DailyReportMode
from shared.payment import calculate_payment
from shared.utils import to_timestamp, utc_now


def _report_zone(tz_name: Optional[str] = None) -> ZoneInfo:
    return ZoneInfo(tz_name or config.REPORT_TIMEZONE)


def get_reporting_day(now: Optional[datetime] = None, tz_name: Optional[str] = None) -> str:
    """Local reporting date (YYYY-MM-DD) for a moment, defaulting to now."""
    now = now or utc_now()
    return now.astimezone(_report_zone(tz_name)).date().isoformat()


def reporting_window(report_date: str, tz_name: Optional[str] = None) -> tuple:
    """
    UTC bounds of a reporting day, inclusive on both ends.

    Returns:
        (start, end) timestamps in the utils.to_timestamp() format
    """
    zone = _report_zone(tz_name)
    day = datetime.strptime(report_date, '%Y-%m-%d')
    start = day.replace(tzinfo=zone)
    next_start = (day + timedelta(days=1)).replace(tzinfo=zone)
    end = next_start - timedelta(microseconds=1)
    return to_timestamp(start), to_timestamp(end)


def is_within_work_hours(now: Optional[datetime] = None, tz_name: Optional[str] = None) -> bool:
    """True between WORK_HOURS_START (inclusive) and WORK_HOURS_END (exclusive), local time."""
    now = now or utc_now()
    hour = now.astimezone(_report_zone(tz_name)).hour
    return config.WORK_HOURS_START <= hour < config.WORK_HOURS_END


def calculate_accuracy_score(responses: List[dict], images_by_id: Dict[str, dict]) -> dict:
    """
    Score a worker's answers against consensus ground truth.

    Args:
        responses: Response records (need 'imageId' and 'answer')
        images_by_id: Image records keyed by imageId

    Returns:
        dict: {
            'accuracyScore': Decimal percentage rounded to 2 places (0 when nothing is validated),
            'validatedResponses': int,
            'correctResponses': int
        }
    """
    validated = 0
    correct = 0

    for response in responses:
        image = images_by_id.get(response['imageId'])
        if not image or not image.get('consensusReached') or image.get('groundTruth') is None:
            continue
        validated += 1
        if bool(response['answer']) == bool(image['groundTruth']):
            correct += 1

    if validated == 0:
        score = Decimal('0')
    else:
        score = (Decimal(100) * correct / validated).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)

    return {
        'accuracyScore': score,
        'validatedResponses': validated,
        'correctResponses': correct
    }


def build_daily_report(
    worker_id: str,
    report_date: str,
    responses: List[dict],
    images_by_id: Dict[str, dict]
) -> dict:
    """
    Compute a DailyReport item from a worker's responses for the day.

    Raises:
        ValueError: if the derived inputs fall outside the calculator's domain
    """
    tasks_completed = len(responses)
    accuracy = calculate_accuracy_score(responses, images_by_id)
    accuracy_score = accuracy['accuracyScore']

    if not 0 <= accuracy_score <= 100:
        raise ValueError(f"Accuracy score {accuracy_score} outside [0, 100]")
    if accuracy['correctResponses'] > accuracy['validatedResponses'] or accuracy['validatedResponses'] > tasks_completed:
        raise ValueError("Validated response counts are inconsistent with tasks completed")

    payment = calculate_payment(tasks_completed, accuracy_score)
    timestamp = to_timestamp(utc_now())

    return {
        'workerId': worker_id,
        'reportDate': report_date,
        'tasksCompleted': tasks_completed,
        'targetTasks': config.DAILY_TASK_TARGET,
        'accuracyScore': accuracy_score,
        'validatedResponses': accuracy['validatedResponses'],
        'correctResponses': accuracy['correctResponses'],
        'basePay': payment['basePay'],
        'qualityBonus': payment['qualityBonus'],
        'totalPay': payment['totalPay'],
        'tier': payment['tier'],
        'bonusSource': config.BONUS_SOURCE,
        'closed': False,
        'createdAt': timestamp,
        'updatedAt': timestamp
    }


def compute_daily_report(worker_id: str, report_date: str) -> dict:
    """Load the worker's responses for the day and build a fresh report."""
    start, end = reporting_window(report_date)
    responses = response_store.get_worker_responses(worker_id, start, end)
    images = response_store.get_images([r['imageId'] for r in responses]) if responses else {}

    report = build_daily_report(worker_id, report_date, responses, images)
    logger.info(
        f"Computed report for {worker_id} on {report_date}: tasks={report['tasksCompleted']} "
        f"accuracy={report['accuracyScore']} total={report['totalPay']}"
    )
    return report


def get_or_create_daily_report(
    worker_id: str,
    report_date: Optional[str] = None,
    mode: Optional[str] = None
) -> dict:
    """
    Return the worker's report for a day, materializing it on first access.

    Modes:
        create-once: the first computed report is kept for the rest of the day,
            even if the worker submits more responses afterwards
        refresh: recomputed and upserted on every read until the day is closed
    """
    report_date = report_date or get_reporting_day()
    mode = mode or config.DAILY_REPORT_MODE

    existing = response_store.get_daily_report(worker_id, report_date)

    if mode == DailyReportMode.CREATE_ONCE:
        if existing:
            return existing
        report, _ = response_store.create_daily_report(compute_daily_report(worker_id, report_date))
        return report

    if mode == DailyReportMode.REFRESH:
        if existing and existing.get('closed'):
            return existing
        report = compute_daily_report(worker_id, report_date)
        if existing:
            report['createdAt'] = existing.get('createdAt', report['createdAt'])
        report, _ = response_store.save_daily_report(report)
        return report

    raise ValueError(f"Unknown daily report mode: {mode}")


def close_daily_report(worker_id: str, report_date: str) -> dict:
    """Recompute a day's report one last time and freeze it."""
    existing = response_store.get_daily_report(worker_id, report_date, consistent=True)
    if existing and existing.get('closed'):
        return existing

    report = compute_daily_report(worker_id, report_date)
    if existing:
        report['createdAt'] = existing.get('createdAt', report['createdAt'])
    report, saved = response_store.save_daily_report(report)
    if saved:
        response_store.mark_daily_report_closed(worker_id, report_date)
        report['closed'] = True
    return report
