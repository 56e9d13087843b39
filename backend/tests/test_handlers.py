"""
Tests for the API and scheduled Lambda handlers (storage mocked).
"""
import json
import pytest
from unittest.mock import MagicMock, patch
from decimal import Decimal
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from shared.models import Role
from shared.response_store import DuplicateResponseError


def api_event(sub='worker-1', settlement='kibera', groups='', body=None, path=None, query=None):
    claims = {}
    if sub:
        claims['sub'] = sub
    if settlement:
        claims['custom:settlementId'] = settlement
    if groups:
        claims['cognito:groups'] = groups
    return {
        'requestContext': {'authorizer': {'claims': claims}},
        'body': json.dumps(body) if body is not None else None,
        'pathParameters': path,
        'queryStringParameters': query
    }


def admin_event(**kwargs):
    kwargs.setdefault('sub', 'admin-1')
    kwargs.setdefault('settlement', None)
    return api_event(groups='admin', **kwargs)


def body_of(response):
    return json.loads(response['body'])


ACTIVE_CAMPAIGN = {'campaignId': 'camp-1', 'isActive': True, 'settlementIds': ['kibera']}
IMAGE = {'imageId': 'img-1', 'campaignId': 'camp-1'}


class TestSubmitResponse:

    @pytest.fixture
    def mocks(self):
        from handlers.responses import submit_response
        with patch.object(submit_response, 'get_image', return_value=dict(IMAGE)) as mock_get_image, \
                patch.object(submit_response, 'dynamo') as mock_dynamo, \
                patch.object(submit_response, 'record_response') as mock_record, \
                patch.object(submit_response, 'events') as mock_events:
            mock_dynamo.get_item.return_value = dict(ACTIVE_CAMPAIGN)
            mock_record.return_value = {
                'response': {'responseId': 'worker-1#img-1'},
                'consensus': {
                    'imageId': 'img-1', 'totalResponses': 3, 'groundTruth': None,
                    'consensusReached': False, 'confidenceLevel': 0.0, 'changed': False
                }
            }
            yield submit_response, {
                'get_image': mock_get_image,
                'dynamo': mock_dynamo,
                'record': mock_record,
                'events': mock_events
            }

    def submit(self, module, answer=True, **kwargs):
        kwargs.setdefault('body', {'answer': answer})
        kwargs.setdefault('path', {'imageId': 'img-1'})
        return module.handler(api_event(**kwargs), None)

    def test_success(self, mocks):
        module, m = mocks
        response = self.submit(module)

        assert response['statusCode'] == 200
        data = body_of(response)['data']
        assert data['responseId'] == 'worker-1#img-1'
        assert data['consensus'] == {'consensusReached': False, 'totalResponses': 3}
        m['record'].assert_called_once_with('worker-1', IMAGE, True)
        m['events'].put_events.assert_not_called()

    def test_unauthenticated(self, mocks):
        module, _ = mocks
        assert self.submit(module, sub=None)['statusCode'] == 401

    @pytest.mark.parametrize('body', [{}, {'answer': 'yes'}, {'answer': 1}, {'answer': None}])
    def test_answer_must_be_boolean(self, mocks, body):
        module, m = mocks
        response = self.submit(module, body=body)
        assert response['statusCode'] == 400
        m['record'].assert_not_called()

    def test_missing_image_id(self, mocks):
        module, _ = mocks
        assert self.submit(module, path=None)['statusCode'] == 400

    def test_unknown_image(self, mocks):
        module, m = mocks
        m['get_image'].return_value = None
        response = self.submit(module)
        assert response['statusCode'] == 404
        assert body_of(response)['message'] == 'Image not found'

    def test_inactive_campaign(self, mocks):
        module, m = mocks
        m['dynamo'].get_item.return_value = dict(ACTIVE_CAMPAIGN, isActive=False)
        response = self.submit(module)
        assert response['statusCode'] == 400
        assert body_of(response)['message'] == 'Campaign is not active'

    def test_missing_settlement(self, mocks):
        module, _ = mocks
        response = self.submit(module, settlement=None)
        assert response['statusCode'] == 400
        assert body_of(response)['message'] == 'User settlement not found'

    def test_settlement_not_assigned(self, mocks):
        module, m = mocks
        response = self.submit(module, settlement='mathare')
        assert response['statusCode'] == 403
        m['record'].assert_not_called()

    def test_duplicate(self, mocks):
        module, m = mocks
        m['record'].side_effect = DuplicateResponseError('dup')
        response = self.submit(module)
        assert response['statusCode'] == 409
        assert body_of(response)['message'] == 'You have already responded to this image'

    def test_unexpected_error(self, mocks):
        module, m = mocks
        m['record'].side_effect = RuntimeError('boom')
        response = self.submit(module)
        assert response['statusCode'] == 500
        assert body_of(response)['success'] is False

    def test_consensus_event_emitted_once_reached(self, mocks):
        module, m = mocks
        m['record'].return_value['consensus'].update(
            totalResponses=5, groundTruth=True, consensusReached=True, confidenceLevel=1.0, changed=True
        )

        with patch.object(module.config, 'EVENT_BUS_NAME', 'dpw-events'):
            response = self.submit(module)

        assert response['statusCode'] == 200
        entry = m['events'].put_events.call_args.kwargs['Entries'][0]
        assert entry['DetailType'] == 'ImageConsensusReached'
        assert json.loads(entry['Detail'])['groundTruth'] is True

    def test_event_failure_does_not_fail_request(self, mocks):
        module, m = mocks
        m['record'].return_value['consensus'].update(consensusReached=True, groundTruth=True, changed=True)
        m['events'].put_events.side_effect = RuntimeError('bus down')

        with patch.object(module.config, 'EVENT_BUS_NAME', 'dpw-events'):
            assert self.submit(module)['statusCode'] == 200

    def test_answer_recorded_when_consensus_read_is_throttled(self):
        from botocore.exceptions import ClientError
        from handlers.responses import submit_response
        throttled = ClientError(
            {'Error': {'Code': 'ProvisionedThroughputExceededException', 'Message': 'slow down'}}, 'GetItem'
        )
        with patch.object(submit_response, 'get_image', return_value=dict(IMAGE, totalResponses=2)), \
                patch.object(submit_response, 'dynamo') as mock_dynamo, \
                patch('shared.response_store.dynamo') as store_dynamo, \
                patch.object(submit_response, 'events') as mock_events:
            mock_dynamo.get_item.return_value = dict(ACTIVE_CAMPAIGN)
            store_dynamo.get_item.side_effect = throttled
            response = self.submit(submit_response)

        assert response['statusCode'] == 200
        store_dynamo.dynamodb.meta.client.transact_write_items.assert_called_once()
        assert body_of(response)['data']['consensus'] == {'consensusReached': False, 'totalResponses': 3}
        mock_events.put_events.assert_not_called()


class TestGetDailyReport:

    REPORT = {
        'workerId': 'worker-1',
        'reportDate': '2026-10-19',
        'tasksCompleted': 300,
        'targetTasks': 300,
        'accuracyScore': Decimal('92.5'),
        'validatedResponses': 240,
        'basePay': Decimal('760'),
        'qualityBonus': Decimal('228'),
        'totalPay': Decimal('988'),
        'closed': False
    }

    def test_own_report(self):
        from handlers.reports import get_daily_report
        with patch.object(get_daily_report, 'get_or_create_daily_report', return_value=self.REPORT) as mock_get:
            response = get_daily_report.handler(api_event(query={'date': '2026-10-19'}), None)

        assert response['statusCode'] == 200
        data = body_of(response)['data']
        assert data['totalPay'] == 988
        assert data['accuracyScore'] == 92.5
        mock_get.assert_called_once_with('worker-1', '2026-10-19')

    def test_defaults_to_today(self):
        from handlers.reports import get_daily_report
        with patch.object(get_daily_report, 'get_or_create_daily_report', return_value=self.REPORT) as mock_get:
            get_daily_report.handler(api_event(), None)
        mock_get.assert_called_once_with('worker-1', None)

    def test_worker_cannot_read_other_worker(self):
        from handlers.reports import get_daily_report
        with patch.object(get_daily_report, 'get_or_create_daily_report') as mock_get:
            response = get_daily_report.handler(api_event(query={'workerId': 'worker-2'}), None)
        assert response['statusCode'] == 403
        mock_get.assert_not_called()

    def test_admin_reads_any_worker(self):
        from handlers.reports import get_daily_report
        with patch.object(get_daily_report, 'get_or_create_daily_report', return_value=self.REPORT) as mock_get:
            response = get_daily_report.handler(admin_event(query={'workerId': 'worker-1'}), None)
        assert response['statusCode'] == 200
        mock_get.assert_called_once_with('worker-1', None)

    def test_bad_date(self):
        from handlers.reports import get_daily_report
        response = get_daily_report.handler(api_event(query={'date': '19/10/2026'}), None)
        assert response['statusCode'] == 400


class TestListPayments:

    def test_summary(self):
        from handlers.reports.list_payments import summarize_payments
        reports = [
            {'totalPay': Decimal('988'), 'basePay': Decimal('760'), 'qualityBonus': Decimal('228'), 'closed': True},
            {'totalPay': Decimal('760'), 'basePay': Decimal('760'), 'qualityBonus': Decimal('0')},
            {'totalPay': Decimal('0'), 'basePay': Decimal('0'), 'qualityBonus': Decimal('0')},
        ]

        summary = summarize_payments(reports)

        assert summary['totalReports'] == 3
        assert summary['totalAmount'] == Decimal('1748')
        assert summary['quotaMet'] == 2
        assert summary['bonusPaid'] == 1
        assert summary['closedReports'] == 1
        assert summary['averageEarning'] == Decimal('582.67')

    def test_empty_summary(self):
        from handlers.reports.list_payments import summarize_payments
        assert summarize_payments([])['averageEarning'] == 0

    def test_admin_only(self):
        from handlers.reports import list_payments
        assert list_payments.handler(api_event(), None)['statusCode'] == 403

    def test_lists_reports_for_date(self):
        from handlers.reports import list_payments
        reports = [
            {'workerId': 'w1', 'tasksCompleted': 120, 'accuracyScore': 80, 'basePay': 0,
             'qualityBonus': 0, 'totalPay': 0},
            {'workerId': 'w2', 'tasksCompleted': 300, 'accuracyScore': 95, 'basePay': 760,
             'qualityBonus': 228, 'totalPay': 988, 'closed': True},
        ]
        with patch.object(list_payments, 'list_daily_reports_for_date', return_value=reports) as mock_list:
            response = list_payments.handler(admin_event(query={'date': '2026-10-19'}), None)

        mock_list.assert_called_once_with('2026-10-19')
        payments = body_of(response)['data']['payments']
        assert [p['workerId'] for p in payments] == ['w2', 'w1']
        assert payments[0]['status'] == 'closed'


class TestCampaignConsensus:

    IMAGES = [
        {'imageId': 'a', 'totalResponses': 2, 'yesCount': 2, 'noCount': 0,
         'consensusReached': False, 'confidenceLevel': 0},
        {'imageId': 'b', 'totalResponses': 7, 'yesCount': 4, 'noCount': 3,
         'consensusReached': False, 'confidenceLevel': Decimal('0.57')},
        {'imageId': 'c', 'totalResponses': 10, 'yesCount': 5, 'noCount': 5,
         'consensusReached': False, 'confidenceLevel': Decimal('0.5')},
        {'imageId': 'd', 'totalResponses': 12, 'yesCount': 6, 'noCount': 6,
         'consensusReached': False, 'confidenceLevel': Decimal('0.5')},
        {'imageId': 'e', 'totalResponses': 5, 'yesCount': 5, 'noCount': 0,
         'consensusReached': True, 'groundTruth': True, 'confidenceLevel': Decimal('1')},
        {'imageId': 'f', 'totalResponses': 5, 'yesCount': 0, 'noCount': 5,
         'consensusReached': True, 'groundTruth': False, 'confidenceLevel': Decimal('1')},
    ]

    def test_review_queue_order(self):
        from handlers.campaigns.get_campaign_consensus import build_review_queue
        queue = build_review_queue(self.IMAGES, limit=50)
        assert [i['imageId'] for i in queue] == ['d', 'c', 'b']

    def test_review_queue_limit(self):
        from handlers.campaigns.get_campaign_consensus import build_review_queue
        assert len(build_review_queue(self.IMAGES, limit=1)) == 1

    def test_summary(self):
        from handlers.campaigns.get_campaign_consensus import summarize_consensus
        summary = summarize_consensus(self.IMAGES)
        assert summary['totalImages'] == 6
        assert summary['totalResponses'] == 41
        assert summary['consensusReached'] == 2
        assert summary['undecided'] == 3
        assert summary['awaitingResponses'] == 1
        assert summary['groundTruthYes'] == 1
        assert summary['groundTruthNo'] == 1
        assert summary['completionRate'] == 33.3

    def test_missing_campaign(self):
        from handlers.campaigns import get_campaign_consensus
        with patch.object(get_campaign_consensus, 'dynamo') as mock_dynamo:
            mock_dynamo.get_item.return_value = None
            response = get_campaign_consensus.handler(admin_event(path={'campaignId': 'nope'}), None)
        assert response['statusCode'] == 404


class TestCreateCampaign:

    BODY = {
        'title': 'Kibera drainage survey',
        'question': 'Is the drain in this image blocked?',
        'imageUrls': ['https://img/1.jpg', 'https://img/2.jpg', ' '],
        'settlementIds': ['kibera', 'kibera', 'mathare']
    }

    def test_creates_images_and_campaign(self):
        from handlers.campaigns import create_campaign
        with patch.object(create_campaign, 'dynamo') as mock_dynamo:
            mock_dynamo.batch_write_items.return_value = True
            response = create_campaign.handler(admin_event(body=self.BODY), None)

        assert response['statusCode'] == 201
        data = body_of(response)['data']
        assert data['imageCount'] == 2
        assert data['settlementIds'] == ['kibera', 'mathare']

        images_call, campaign_call = mock_dynamo.batch_write_items.call_args_list
        images = images_call.args[1]
        assert all(i['totalResponses'] == 0 and i['consensusReached'] is False for i in images)
        assert campaign_call.args[1][0]['campaignId'] == data['campaignId']

    def test_worker_forbidden(self):
        from handlers.campaigns import create_campaign
        assert create_campaign.handler(api_event(body=self.BODY), None)['statusCode'] == 403

    @pytest.mark.parametrize('override', [
        {'title': ''},
        {'imageUrls': []},
        {'settlementIds': []},
        {'settlementIds': 'kibera'},
    ])
    def test_validation(self, override):
        from handlers.campaigns import create_campaign
        with patch.object(create_campaign, 'dynamo') as mock_dynamo:
            response = create_campaign.handler(admin_event(body=dict(self.BODY, **override)), None)
        assert response['statusCode'] == 400
        mock_dynamo.batch_write_items.assert_not_called()

    def test_image_write_failure(self):
        from handlers.campaigns import create_campaign
        with patch.object(create_campaign, 'dynamo') as mock_dynamo:
            mock_dynamo.batch_write_items.return_value = False
            response = create_campaign.handler(admin_event(body=self.BODY), None)
        assert response['statusCode'] == 500
        assert mock_dynamo.batch_write_items.call_count == 1

    def test_writes_are_keyed_for_deduplication(self):
        from handlers.campaigns import create_campaign
        with patch.object(create_campaign, 'dynamo') as mock_dynamo:
            mock_dynamo.batch_write_items.return_value = True
            create_campaign.handler(admin_event(body=self.BODY), None)

        images_call, campaign_call = mock_dynamo.batch_write_items.call_args_list
        assert images_call.kwargs['key_names'] == ['imageId']
        assert campaign_call.kwargs['key_names'] == ['campaignId']

    @pytest.mark.parametrize('override', [
        {'imageUrls': 'https://img/1.jpg'},
        {'imageUrls': {'url': 'https://img/1.jpg'}},
        {'imageUrls': [None, 42, '']},
        {'title': 42},
        {'question': ['Is it blocked?']},
        {'settlementIds': ['kibera', '']},
        {'settlementIds': [7]},
    ])
    def test_malformed_fields(self, override):
        from handlers.campaigns import create_campaign
        with patch.object(create_campaign, 'dynamo') as mock_dynamo:
            response = create_campaign.handler(admin_event(body=dict(self.BODY, **override)), None)
        assert response['statusCode'] == 400
        mock_dynamo.batch_write_items.assert_not_called()

    def test_string_image_urls_are_not_split_into_characters(self):
        from handlers.campaigns import create_campaign
        with patch.object(create_campaign, 'dynamo') as mock_dynamo:
            response = create_campaign.handler(
                admin_event(body=dict(self.BODY, imageUrls='https://img/1.jpg')), None
            )
        assert body_of(response)['message'] == 'imageUrls must be a list of image URLs'
        mock_dynamo.batch_write_items.assert_not_called()

    @pytest.mark.parametrize('raw_body', ['[1, 2]', '"campaign"', 'not json'])
    def test_body_must_be_json_object(self, raw_body):
        from handlers.campaigns import create_campaign
        event = admin_event()
        event['body'] = raw_body
        with patch.object(create_campaign, 'dynamo') as mock_dynamo:
            response = create_campaign.handler(event, None)
        assert response['statusCode'] == 400
        mock_dynamo.batch_write_items.assert_not_called()


class TestCurrentTasks:

    def test_returns_unanswered_images(self):
        from handlers.tasks import get_current_tasks
        images = [
            {'imageId': 'a', 'campaignId': 'camp-1', 'createdAt': '1'},
            {'imageId': 'b', 'campaignId': 'camp-1', 'createdAt': '2'},
            {'imageId': 'c', 'campaignId': 'camp-1', 'createdAt': '3'},
            {'imageId': 'd', 'campaignId': 'camp-1', 'createdAt': '4'},
        ]
        with patch.object(get_current_tasks, 'find_active_campaign', return_value=ACTIVE_CAMPAIGN), \
                patch.object(get_current_tasks, 'get_campaign_images', return_value=images), \
                patch.object(get_current_tasks, 'get_answered_image_ids', return_value={'a'}):
            response = get_current_tasks.handler(api_event(query={'limit': '2'}), None)

        data = body_of(response)['data']
        assert [i['id'] for i in data['images']] == ['b', 'c']
        assert data['completedImages'] == 1
        assert data['progress'] == 25

    def test_no_active_campaign(self):
        from handlers.tasks import get_current_tasks
        with patch.object(get_current_tasks, 'find_active_campaign', return_value=None):
            response = get_current_tasks.handler(api_event(), None)
        assert response['statusCode'] == 404


class TestCloseDailyReports:

    WORKERS = [{'userId': 'w1', 'role': Role.WORKER}, {'userId': 'w2', 'role': Role.WORKER}]
    NOTHING_PENDING = {'checked': 0, 'reached': [], 'failed': []}

    def test_closes_each_worker(self):
        from handlers.reports import close_daily_reports

        def close(worker_id, report_date):
            if worker_id == 'w2':
                raise RuntimeError('throttled')
            return {'workerId': worker_id, 'closed': True}

        with patch.object(close_daily_reports, 'dynamo') as mock_dynamo, \
                patch.object(close_daily_reports, 'repair_pending_consensus', return_value=self.NOTHING_PENDING), \
                patch.object(close_daily_reports, 'close_daily_report', side_effect=close):
            mock_dynamo.scan_all.return_value = self.WORKERS
            result = close_daily_reports.handler({'date': '2026-10-18'}, None)

        assert result == {
            'date': '2026-10-18',
            'consensusRepaired': 0,
            'checked': 2,
            'closed': 1,
            'failed': ['w2']
        }

    def test_pending_consensus_repaired_before_closing(self):
        from handlers.reports import close_daily_reports
        calls = []

        def repair():
            calls.append('repair')
            return {'checked': 2, 'reached': ['img-1'], 'failed': []}

        def close(worker_id, report_date):
            calls.append(worker_id)
            return {'workerId': worker_id, 'closed': True}

        with patch.object(close_daily_reports, 'dynamo') as mock_dynamo, \
                patch.object(close_daily_reports, 'repair_pending_consensus', side_effect=repair), \
                patch.object(close_daily_reports, 'close_daily_report', side_effect=close):
            mock_dynamo.scan_all.return_value = self.WORKERS
            result = close_daily_reports.handler({'date': '2026-10-18'}, None)

        assert calls == ['repair', 'w1', 'w2']
        assert result['consensusRepaired'] == 1

    def test_closed_reports_announced(self):
        from handlers.reports import close_daily_reports
        reports = [
            {'workerId': f'w{i}', 'reportDate': '2026-10-18', 'tasksCompleted': 300,
             'accuracyScore': Decimal('92.5'), 'totalPay': Decimal('988'), 'closed': True}
            for i in range(12)
        ]

        with patch.object(close_daily_reports, 'events') as mock_events, \
                patch.object(close_daily_reports.config, 'EVENT_BUS_NAME', 'dpw-events'):
            close_daily_reports.emit_report_closed_events(reports)

        assert mock_events.put_events.call_count == 2
        first_batch = mock_events.put_events.call_args_list[0].kwargs['Entries']
        assert len(first_batch) == 10
        assert first_batch[0]['DetailType'] == 'DailyReportClosed'
        assert json.loads(first_batch[0]['Detail']) == {
            'workerId': 'w0', 'reportDate': '2026-10-18', 'tasksCompleted': 300,
            'accuracyScore': 92.5, 'totalPay': 988
        }

    def test_no_events_without_bus(self):
        from handlers.reports import close_daily_reports
        with patch.object(close_daily_reports, 'events') as mock_events, \
                patch.object(close_daily_reports.config, 'EVENT_BUS_NAME', ''):
            close_daily_reports.emit_report_closed_events([{'workerId': 'w1', 'reportDate': '2026-10-18'}])
        mock_events.put_events.assert_not_called()

    def test_event_failure_is_logged_not_raised(self):
        from handlers.reports import close_daily_reports
        with patch.object(close_daily_reports, 'events') as mock_events, \
                patch.object(close_daily_reports.config, 'EVENT_BUS_NAME', 'dpw-events'):
            mock_events.put_events.side_effect = RuntimeError('bus down')
            close_daily_reports.emit_report_closed_events([{'workerId': 'w1', 'reportDate': '2026-10-18'}])


class TestListSettlements:

    def test_sorted_by_name(self):
        from handlers.settlements import list_settlements
        settlements = [
            {'settlementId': 'mathare', 'name': 'Mathare', 'location': 'Nairobi'},
            {'settlementId': 'kibera', 'name': 'kibera', 'location': 'Nairobi'},
        ]
        with patch.object(list_settlements, 'dynamo') as mock_dynamo:
            mock_dynamo.scan_all.return_value = settlements
            response = list_settlements.handler({'httpMethod': 'GET', 'path': '/settlements'}, None)

        assert response['statusCode'] == 200
        assert body_of(response)['data'] == [
            {'id': 'kibera', 'name': 'kibera', 'location': 'Nairobi'},
            {'id': 'mathare', 'name': 'Mathare', 'location': 'Nairobi'},
        ]

    def test_storage_failure(self):
        from handlers.settlements import list_settlements
        with patch.object(list_settlements, 'dynamo') as mock_dynamo:
            mock_dynamo.scan_all.side_effect = RuntimeError('throttled')
            response = list_settlements.handler({}, None)
        assert response['statusCode'] == 500


class TestAdminStats:

    SINCE = '2026-09-19T00:00:00Z'

    def test_build_stats(self):
        from handlers.admin.get_stats import build_admin_stats
        workers = [{'userId': 'w1', 'createdAt': '2026-10-01T08:00:00Z'}, {'userId': 'w2', 'createdAt': '2026-01-01T08:00:00Z'}]
        campaigns = [{'campaignId': 'c1', 'isActive': True}, {'campaignId': 'c2', 'isActive': False}]
        images = [
            {'imageId': 'a', 'totalResponses': 5, 'consensusReached': True},
            {'imageId': 'b', 'totalResponses': Decimal('7'), 'consensusReached': False},
            {'imageId': 'c', 'totalResponses': 0},
        ]
        reports = [{'totalPay': Decimal('988')}, {'totalPay': Decimal('760')}]

        stats = build_admin_stats(workers, campaigns, images, 9, reports, self.SINCE)

        assert stats['activeWorkers'] == 2
        assert stats['newWorkers'] == 1
        assert stats['totalCampaigns'] == 2
        assert stats['activeCampaigns'] == 1
        assert stats['totalResponses'] == 12
        assert stats['recentResponses'] == 9
        assert stats['completedImages'] == 1
        assert stats['completionRate'] == 33.3
        assert stats['recentPayouts'] == Decimal('1748')

    def test_no_images(self):
        from handlers.admin.get_stats import build_admin_stats
        assert build_admin_stats([], [], [], 0, [], self.SINCE)['completionRate'] == 0.0

    def test_admin_only(self):
        from handlers.admin import get_stats
        with patch.object(get_stats, 'dynamo') as mock_dynamo:
            response = get_stats.handler(api_event(), None)
        assert response['statusCode'] == 403
        mock_dynamo.scan_all.assert_not_called()

    def test_summary_response(self):
        from handlers.admin import get_stats
        with patch.object(get_stats, 'dynamo') as mock_dynamo:
            mock_dynamo.scan_all.return_value = []
            response = get_stats.handler(admin_event(), None)

        assert response['statusCode'] == 200
        assert body_of(response)['data']['summary']['recentDays'] == get_stats.RECENT_DAYS
        assert mock_dynamo.scan_all.call_count == 5


class TestListUsers:

    USERS = [
        {'userId': 'w1', 'phone': '+254712345678', 'role': Role.WORKER, 'settlementId': 'kibera',
         'createdAt': '2026-09-01T08:00:00Z', 'name': 'Achieng'},
        {'userId': 'w2', 'phone': '+254798765432', 'role': Role.WORKER, 'settlementId': 'gone',
         'createdAt': '2026-10-01T08:00:00Z'},
    ]
    RESPONSES = [
        {'workerId': 'w1', 'submittedAt': '2026-10-17T09:00:00Z'},
        {'workerId': 'w1', 'submittedAt': '2026-10-18T09:00:00Z'},
    ]

    def test_activity_summary(self):
        from handlers.users.list_users import summarize_activity
        assert summarize_activity(self.RESPONSES) == {'w1': {'count': 2, 'lastSubmittedAt': '2026-10-18T09:00:00Z'}}

    def test_user_list(self):
        from handlers.users.list_users import build_user_list, summarize_activity
        settlements = {'kibera': {'settlementId': 'kibera', 'name': 'Kibera'}}

        users = build_user_list(self.USERS, settlements, summarize_activity(self.RESPONSES))

        assert [u['id'] for u in users] == ['w2', 'w1']
        newest, oldest = users
        assert newest['name'] == 'User 5432'
        assert newest['settlement'] == 'Unassigned'
        assert newest['tasksCompleted'] == 0
        assert newest['lastActive'] == '2026-10-01'
        assert oldest['settlement'] == 'Kibera'
        assert oldest['tasksCompleted'] == 2
        assert oldest['lastActive'] == '2026-10-18'
        assert oldest['displayPhone'] == '+254 712 345 678'

    def test_admin_only(self):
        from handlers.users import list_users
        with patch.object(list_users, 'dynamo') as mock_dynamo:
            response = list_users.handler(api_event(), None)
        assert response['statusCode'] == 403
        mock_dynamo.scan_all.assert_not_called()


class TestVerifyLogin:

    def test_login(self):
        from handlers.auth import verify_login
        user = {'userId': 'user-1', 'role': Role.WORKER, 'settlementId': 'kibera'}
        with patch.object(verify_login.verifier, 'find_user_by_phone', return_value=user):
            response = verify_login.handler(
                {'body': json.dumps({'phone': '0712345678', 'settlementId': 'kibera'})}, None
            )
        assert response['statusCode'] == 200
        assert body_of(response)['data']['user']['phone'] == '+254712345678'

    def test_rejected_login(self):
        from handlers.auth import verify_login
        with patch.object(verify_login.verifier, 'find_user_by_phone', return_value=None):
            response = verify_login.handler({'body': json.dumps({'phone': '0712345678'})}, None)
        assert response['statusCode'] == 401
        assert body_of(response)['message'] == 'No account found with this phone number'


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
