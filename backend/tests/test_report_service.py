"""
Tests for ReportService and image verification
"""
import pytest
from unittest.mock import MagicMock, patch
import requests

from services.disaster_service import DisasterService
from services.report_service import MAX_IMAGE_BYTES, ReportService, classify_verification, fetch_image
from utils.errors import NotFoundError, UpstreamServiceError, ValidationError

IMAGE_URL = 'https://images.example.com/flood.png'


@pytest.fixture
def disaster_service(fake_db, notifier, clock):
    return DisasterService(fake_db, notifier, clock=clock)


@pytest.fixture
def service(fake_db, notifier, gemini, disaster_service, image_fetcher, clock):
    return ReportService(fake_db, notifier, gemini, disaster_service, image_fetcher=image_fetcher, clock=clock)


@pytest.fixture
def disaster_id(disaster_service, notifier):
    created = disaster_service.create_disaster({'title': 'NYC Flood', 'owner_id': 'netrunnerX'})
    notifier.reset_mock()
    return created['id']


@pytest.fixture
def report(service, disaster_id, notifier):
    created = service.create_report({
        'disaster_id': disaster_id,
        'user_id': 'citizen1',
        'content': 'Need food in Lower East Side',
        'image_url': IMAGE_URL
    })
    notifier.reset_mock()
    return created


class TestClassifyVerification:

    @pytest.mark.parametrize('text,expected', [
        ('verified', 'verified'),
        ('Verified.', 'verified'),
        ('This looks fake to me', 'fake'),
        ('FAKE', 'fake'),
        ('unclear', 'unclear'),
        ('I cannot tell', 'unclear'),
        ('', 'unclear'),
        (None, 'unclear'),
    ])
    def test_mapping(self, text, expected):
        assert classify_verification(text) == expected

    def test_verified_wins_over_fake(self):
        assert classify_verification('not fake, verified') == 'verified'


class TestCreateReport:

    def test_starts_pending(self, report):
        assert report['verification_status'] == 'pending'
        assert report['id']

    def test_requires_disaster_and_content(self, service, disaster_id):
        with pytest.raises(ValidationError, match='Disaster ID and content are required'):
            service.create_report({'disaster_id': disaster_id})
        with pytest.raises(ValidationError):
            service.create_report({'content': 'Need water'})

    def test_parent_disaster_must_exist(self, service, notifier):
        with pytest.raises(NotFoundError):
            service.create_report({'disaster_id': 'missing', 'content': 'Need water'})
        notifier.report_created.assert_not_called()

    def test_rejects_unsafe_image_url(self, service, disaster_id):
        with pytest.raises(ValidationError, match='Invalid image URL'):
            service.create_report({
                'disaster_id': disaster_id,
                'content': 'Photo attached',
                'image_url': 'http://169.254.169.254/latest/meta-data.jpg'
            })

    def test_child_path_of_real_disaster_is_not_a_parent(self, service, disaster_id, fake_db, notifier):
        with pytest.raises(NotFoundError):
            service.create_report({'disaster_id': f'{disaster_id}/title', 'content': 'Need water'})

        assert 'reports' not in fake_db.data
        notifier.report_created.assert_not_called()

    @pytest.mark.parametrize('bad_id', ['a.b', 'a$b', 'a#b', 'a[0]', 'a?b'])
    def test_disaster_id_with_illegal_characters_is_not_found(self, service, bad_id):
        with pytest.raises(NotFoundError):
            service.create_report({'disaster_id': bad_id, 'content': 'Need water'})

    def test_image_is_optional(self, service, disaster_id, fake_db):
        created = service.create_report({'disaster_id': disaster_id, 'content': 'Road blocked'})

        assert 'image_url' not in created
        assert fake_db.data['reports'][created['id']]['content'] == 'Road blocked'

    def test_broadcasts_new_report(self, service, disaster_id, notifier):
        created = service.create_report({'disaster_id': disaster_id, 'content': 'Road blocked'})
        notifier.report_created.assert_called_once_with(created)

    def test_list_reports_for_disaster(self, service, disaster_id, clock):
        first = service.create_report({'disaster_id': disaster_id, 'content': 'First'})
        clock.advance(minutes=1)
        second = service.create_report({'disaster_id': disaster_id, 'content': 'Second'})

        assert [r['id'] for r in service.list_reports(disaster_id)] == [first['id'], second['id']]
        assert service.list_reports('other') == []

    def test_get_missing_report(self, service):
        with pytest.raises(NotFoundError):
            service.get_report('missing')

    @pytest.mark.parametrize('bad_id', ['a.b', '', 'x/content'])
    def test_get_malformed_report_id(self, service, report, bad_id):
        with pytest.raises(NotFoundError):
            service.get_report(bad_id)

    def test_get_child_of_report_is_not_found(self, service, report):
        with pytest.raises(NotFoundError):
            service.get_report(f"{report['id']}/content")


class TestVerifyReport:

    def test_fake_classification_is_persisted(self, service, report, gemini, fake_db, clock):
        gemini.classify_image.return_value = 'This looks fake to me'

        verified = service.verify_report(report['id'])

        assert verified['verification_status'] == 'fake'
        stored = fake_db.data['reports'][report['id']]
        assert stored['verification_status'] == 'fake'
        assert stored['verified_at'] == clock.now.isoformat()

    def test_unclear_when_neither_keyword(self, service, report, gemini):
        gemini.classify_image.return_value = 'Hard to say from this angle'
        assert service.verify_report(report['id'])['verification_status'] == 'unclear'

    def test_sends_image_bytes_and_mime_type(self, service, report, gemini, image_fetcher):
        service.verify_report(report['id'])

        image_fetcher.assert_called_once_with(IMAGE_URL)
        _, image_bytes, mime_type = gemini.classify_image.call_args[0]
        assert image_bytes == image_fetcher.return_value
        assert mime_type == 'image/png'

    def test_missing_report(self, service):
        with pytest.raises(NotFoundError):
            service.verify_report('missing')

    def test_malformed_report_id(self, service, gemini):
        with pytest.raises(NotFoundError):
            service.verify_report('a[0]')
        gemini.classify_image.assert_not_called()

    def test_report_without_image(self, service, disaster_id, gemini):
        created = service.create_report({'disaster_id': disaster_id, 'content': 'No photo'})

        with pytest.raises(NotFoundError):
            service.verify_report(created['id'])
        gemini.classify_image.assert_not_called()

    def test_gemini_failure_leaves_status_pending(self, service, report, gemini, fake_db, notifier):
        gemini.classify_image.side_effect = UpstreamServiceError('quota exceeded')

        with pytest.raises(UpstreamServiceError):
            service.verify_report(report['id'])

        assert fake_db.data['reports'][report['id']]['verification_status'] == 'pending'
        notifier.report_updated.assert_not_called()

    def test_download_failure_is_upstream_error(self, service, report, image_fetcher, gemini):
        image_fetcher.side_effect = requests.exceptions.ConnectionError('host unreachable')

        with pytest.raises(UpstreamServiceError):
            service.verify_report(report['id'])
        gemini.classify_image.assert_not_called()

    def test_broadcasts_report_updated(self, service, report, notifier):
        verified = service.verify_report(report['id'])
        notifier.report_updated.assert_called_once_with(verified)


class TestFetchImage:

    @staticmethod
    def streamed(chunks):
        response = MagicMock()
        response.raise_for_status.return_value = None
        response.iter_content.return_value = iter(chunks)
        return response

    @patch('services.report_service.requests.get')
    def test_joins_chunks(self, mock_get):
        mock_get.return_value.__enter__.return_value = self.streamed([b'abc', b'def'])

        assert fetch_image(IMAGE_URL, timeout=5) == b'abcdef'
        mock_get.assert_called_once_with(IMAGE_URL, timeout=5, stream=True)

    @patch('services.report_service.requests.get')
    def test_refuses_oversized_body(self, mock_get):
        chunk = b'x' * (MAX_IMAGE_BYTES // 2 + 1)
        mock_get.return_value.__enter__.return_value = self.streamed([chunk, chunk])

        with pytest.raises(ValueError):
            fetch_image(IMAGE_URL)

    @patch('services.report_service.requests.get')
    def test_http_error_propagates(self, mock_get):
        response = self.streamed([])
        response.raise_for_status.side_effect = requests.exceptions.HTTPError('404 Not Found')
        mock_get.return_value.__enter__.return_value = response

        with pytest.raises(requests.exceptions.HTTPError):
            fetch_image(IMAGE_URL)
