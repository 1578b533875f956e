"""
Validation utilities for disasters and situation reports.

Provides centralized validation logic for:
- Required fields on disaster create/update and report create
- Tag normalization (list or comma-separated string)
- HTML stripping of free text (the browser client renders it as HTML)
"""
import re
from typing import Any, Dict, List, Optional, Tuple

from bleach import clean

from utils.url_validator import validate_image_url

# Characters the Realtime Database refuses in keys, plus "/" which would
# address a child node instead of a record
_ILLEGAL_KEY_CHARS = re.compile(r'[./$#\[\]?\x00-\x1f\x7f]')


def is_valid_record_id(record_id) -> bool:
    """
    Whether `record_id` can name a single record under a collection.

    Examples:
        >>> is_valid_record_id('-NAbC123')
        True
        >>> is_valid_record_id('-NAbC123/title')
        False
        >>> is_valid_record_id('a.b')
        False
    """
    return isinstance(record_id, str) and bool(record_id) and not _ILLEGAL_KEY_CHARS.search(record_id)


def find_illegal_key(value: Any) -> Optional[str]:
    """Return the first dict key, at any depth, the database would reject."""
    if isinstance(value, dict):
        for key, child in value.items():
            if not is_valid_record_id(key):
                return str(key)
            bad = find_illegal_key(child)
            if bad is not None:
                return bad
    elif isinstance(value, list):
        for child in value:
            bad = find_illegal_key(child)
            if bad is not None:
                return bad
    return None


def sanitize_text(value, max_length: Optional[int] = None) -> Optional[str]:
    """
    Strip HTML tags and surrounding whitespace from user text.

    Examples:
        >>> sanitize_text('<b>Flood</b> downtown ')
        'Flood downtown'
        >>> sanitize_text(None) is None
        True
    """
    if value is None:
        return None

    text = clean(str(value), tags=[], strip=True).strip()
    if max_length:
        text = text[:max_length]
    return text


class DisasterValidator:
    """Validator for disaster records."""

    REQUIRED_FIELDS = ['title', 'owner_id']

    # Fields an update may change; everything else in the body is only recorded in the audit entry
    UPDATABLE_FIELDS = ['title', 'description', 'location_name', 'tags']

    MAX_TITLE_LENGTH = 200
    MAX_TEXT_LENGTH = 5000
    MAX_TAGS = 20

    @staticmethod
    def normalize_tags(tags) -> List[str]:
        """
        Normalize tags to a de-duplicated list of non-empty strings.

        Examples:
            >>> DisasterValidator.normalize_tags('flood, urgent,,flood')
            ['flood', 'urgent']
            >>> DisasterValidator.normalize_tags(None)
            []
        """
        if not tags:
            return []

        if isinstance(tags, str):
            tags = tags.split(',')

        normalized = []
        for tag in tags:
            tag = sanitize_text(tag, max_length=50)
            if tag and tag not in normalized:
                normalized.append(tag)
        return normalized[:DisasterValidator.MAX_TAGS]

    @staticmethod
    def validate_disaster_data(data: Dict) -> Tuple[bool, Optional[str]]:
        """
        Validate a disaster creation payload.

        Examples:
            >>> DisasterValidator.validate_disaster_data({'title': 'Flood', 'owner_id': 'netrunnerX'})
            (True, None)
            >>> DisasterValidator.validate_disaster_data({'owner_id': 'netrunnerX'})
            (False, 'Title and owner_id are required.')
        """
        if not isinstance(data, dict):
            return False, 'Request body must be a JSON object.'

        for field in DisasterValidator.REQUIRED_FIELDS:
            if not sanitize_text(data.get(field)):
                return False, 'Title and owner_id are required.'

        if 'tags' in data and data['tags'] is not None and not isinstance(data['tags'], (list, str)):
            return False, 'tags must be a list or a comma-separated string.'

        return True, None

    @staticmethod
    def validate_update_data(data: Dict) -> Tuple[bool, Optional[str]]:
        """
        Validate a disaster update payload.

        The title may be omitted but never blanked, so a stored disaster always keeps one.
        """
        if not isinstance(data, dict) or not data:
            return False, 'Update data is required.'

        if 'title' in data and not sanitize_text(data.get('title')):
            return False, 'Title cannot be empty.'

        if 'tags' in data and data['tags'] is not None and not isinstance(data['tags'], (list, str)):
            return False, 'tags must be a list or a comma-separated string.'

        # The whole body is stored as the audit entry's changes payload
        bad_key = find_illegal_key(data)
        if bad_key is not None:
            return False, f'Invalid field name: {bad_key!r}'

        return True, None

    @staticmethod
    def clean_fields(data: Dict, fields: List[str]) -> Dict:
        """Return the sanitized subset of `data` restricted to `fields`."""
        cleaned = {}
        for field in fields:
            if field not in data:
                continue
            if field == 'tags':
                cleaned['tags'] = DisasterValidator.normalize_tags(data['tags'])
            elif field == 'title':
                cleaned['title'] = sanitize_text(data['title'], DisasterValidator.MAX_TITLE_LENGTH)
            else:
                cleaned[field] = sanitize_text(data[field], DisasterValidator.MAX_TEXT_LENGTH)
        return cleaned


class ReportValidator:
    """Validator for situation reports."""

    VERIFICATION_STATUSES = ['pending', 'verified', 'fake', 'unclear']

    @staticmethod
    def validate_report_data(data: Dict) -> Tuple[bool, Optional[str]]:
        """
        Validate a report creation payload.

        Examples:
            >>> ReportValidator.validate_report_data({'disaster_id': 'd1', 'content': 'Water rising'})
            (True, None)
            >>> ReportValidator.validate_report_data({'disaster_id': 'd1'})
            (False, 'Disaster ID and content are required.')
        """
        if not isinstance(data, dict):
            return False, 'Request body must be a JSON object.'

        if not sanitize_text(data.get('disaster_id')) or not sanitize_text(data.get('content')):
            return False, 'Disaster ID and content are required.'

        if data.get('image_url'):
            is_valid_url, url_error = validate_image_url(data['image_url'])
            if not is_valid_url:
                return False, f'Invalid image URL: {url_error}'

        return True, None
