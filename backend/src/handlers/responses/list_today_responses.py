"""
List Today's Responses Handler.
GET /worker/responses/today
"""
from shared.auth import get_user_sub
from shared.logging import logger, log_event
from shared.reporting import get_reporting_day, reporting_window
from shared.response_store import get_worker_responses
from shared.utils import error_response, format_response


def handler(event, context):
    log_event(event)

    try:
        worker_id = get_user_sub(event)
        if not worker_id:
            return error_response(401, 'Unauthorized')

        report_date = get_reporting_day()
        start, end = reporting_window(report_date)
        responses = get_worker_responses(worker_id, start, end)

        # Newest first
        responses.sort(key=lambda r: r['submittedAt'], reverse=True)

        return format_response(200, {
            'success': True,
            'data': {
                'date': report_date,
                'todayCount': len(responses),
                'responses': [
                    {
                        'id': r['responseId'],
                        'imageId': r['imageId'],
                        'campaignId': r.get('campaignId'),
                        'answer': r['answer'],
                        'submittedAt': r['submittedAt']
                    }
                    for r in responses
                ]
            }
        })

    except Exception as e:
        logger.exception(f"Error fetching responses: {e}")
        return error_response(500, 'Internal server error')
