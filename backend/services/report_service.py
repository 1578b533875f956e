"""
Report Service - situation reports and image verification

Reports belong to an existing disaster and start as "pending". A verify call
downloads the report image, asks Gemini whether it is a real disaster photo,
and stores one of verified / fake / unclear.
"""
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

import requests

from utils.errors import NotFoundError, UpstreamServiceError, ValidationError
from utils.secure_logging import hash_user_id, redact_pii
from utils.url_validator import image_mime_type, validate_image_url
from utils.validators import ReportValidator, is_valid_record_id, sanitize_text

logger = logging.getLogger(__name__)

VERIFICATION_PROMPT = (
    "Analyze this image. Is it a real photo of a disaster (like a flood, fire, "
    "earthquake)? Does it show signs of being AI-generated or digitally "
    "manipulated? Please respond with a single word based on your analysis: "
    "'verified', 'fake', or 'unclear'."
)

MAX_IMAGE_BYTES = 10 * 1024 * 1024


def classify_verification(result_text: str) -> str:
    """
    Map Gemini's answer to a verification status.

    Case-insensitive substring match; "verified" wins over "fake", anything
    else is "unclear".

    Examples:
        >>> classify_verification('This looks fake to me')
        'fake'
        >>> classify_verification('VERIFIED')
        'verified'
        >>> classify_verification('Hard to say')
        'unclear'
    """
    text = (result_text or '').lower()
    if 'verified' in text:
        return 'verified'
    if 'fake' in text:
        return 'fake'
    return 'unclear'


def fetch_image(url: str, timeout: int = 15) -> bytes:
    """
    Download an image, refusing bodies over MAX_IMAGE_BYTES.

    Raises:
        requests.exceptions.RequestException: download failed
        ValueError: image too large
    """
    with requests.get(url, timeout=timeout, stream=True) as response:
        response.raise_for_status()
        chunks = []
        size = 0
        for chunk in response.iter_content(chunk_size=64 * 1024):
            size += len(chunk)
            if size > MAX_IMAGE_BYTES:
                raise ValueError(f"Image exceeds {MAX_IMAGE_BYTES} bytes")
            chunks.append(chunk)
    return b''.join(chunks)


class ReportService:
    """Manages situation reports attached to disasters"""

    COLLECTION = 'reports'

    def __init__(self, firebase_db, notifier, gemini_service, disaster_service,
                 image_fetcher: Optional[Callable[[str], bytes]] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        """
        Args:
            firebase_db: Firebase `db` module (or a compatible double)
            notifier: ChangeNotifier for new_report / report_updated broadcasts
            gemini_service: GeminiService used for image classification
            disaster_service: DisasterService, used to check the parent disaster exists
            image_fetcher: Callable returning image bytes for a URL
            clock: Returns the current aware UTC datetime
        """
        self.db = firebase_db
        self.notifier = notifier
        self.gemini_service = gemini_service
        self.disaster_service = disaster_service
        self.image_fetcher = image_fetcher or fetch_image
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def create_report(self, data: Dict) -> Dict:
        """
        Raises:
            ValidationError: disaster_id/content missing or image_url unsafe
            NotFoundError: parent disaster does not exist
        """
        is_valid, error_message = ReportValidator.validate_report_data(data)
        if not is_valid:
            raise ValidationError(error_message)

        disaster_id = sanitize_text(data['disaster_id'])
        if not self.disaster_service.exists(disaster_id):
            raise NotFoundError('Disaster not found for this report.')

        report = {
            'disaster_id': disaster_id,
            'user_id': sanitize_text(data.get('user_id')) or None,
            'content': sanitize_text(data['content'], 5000),
            'image_url': data.get('image_url') or None,
            'verification_status': 'pending',
            'created_at': self.clock().isoformat()
        }
        # Firebase rejects explicit nulls on push
        report = {key: value for key, value in report.items() if value is not None}

        new_ref = self.db.reference(self.COLLECTION).push(report)
        created = {**report, 'id': new_ref.key}
        logger.info(f"Report {new_ref.key} created for disaster {disaster_id} by "
                    f"{hash_user_id(report.get('user_id'))}: {redact_pii(report['content'][:80])}")

        self.notifier.report_created(created)
        return created

    def get_report(self, report_id: str) -> Dict:
        """
        Raises:
            NotFoundError: no report with this id
        """
        if not is_valid_record_id(report_id):
            raise NotFoundError('Report not found')

        report = self.db.reference(f'{self.COLLECTION}/{report_id}').get()
        if not isinstance(report, dict):
            raise NotFoundError('Report not found')
        return {**report, 'id': report_id}

    def list_reports(self, disaster_id: str) -> List[Dict]:
        """Reports for one disaster, oldest first."""
        reports_dict = self.db.reference(self.COLLECTION).get() or {}

        reports = [
            {**report, 'id': report_id}
            for report_id, report in reports_dict.items()
            if isinstance(report, dict) and report.get('disaster_id') == disaster_id
        ]
        reports.sort(key=lambda r: r.get('created_at') or '')
        return reports

    def verify_report(self, report_id: str) -> Dict:
        """
        Classify the report image and persist the verification status.

        Raises:
            NotFoundError: report or its image_url missing
            UpstreamServiceError: image download or Gemini call failed
        """
        if not is_valid_record_id(report_id):
            raise NotFoundError('Report with a valid image URL not found.')

        ref = self.db.reference(f'{self.COLLECTION}/{report_id}')
        report = ref.get()
        if not isinstance(report, dict) or not report.get('image_url'):
            raise NotFoundError('Report with a valid image URL not found.')

        image_url = report['image_url']
        is_valid_url, url_error = validate_image_url(image_url)
        if not is_valid_url:
            raise ValidationError(f'Invalid image URL: {url_error}')

        public_message = 'An error occurred during image verification.'
        try:
            image_bytes = self.image_fetcher(image_url)
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error(f"Image download failed for report {report_id}: {e}")
            raise UpstreamServiceError(f"Image download failed: {e}", public_message) from e

        try:
            result_text = self.gemini_service.classify_image(
                VERIFICATION_PROMPT,
                image_bytes,
                image_mime_type(image_url) or 'image/jpeg'
            )
        except UpstreamServiceError as e:
            logger.error(f"Image verification failed for report {report_id}: {e}")
            raise UpstreamServiceError(str(e), public_message) from e

        status = classify_verification(result_text)
        updates = {
            'verification_status': status,
            'verified_at': self.clock().isoformat()
        }
        ref.update(updates)

        verified = {**report, **updates, 'id': report_id}
        logger.info(f"Report {report_id} verification: {status}")

        self.notifier.report_updated(verified)
        return verified
