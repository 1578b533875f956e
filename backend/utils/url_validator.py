"""
Image URL checks for situation reports.

Report images are fetched server-side before being sent to Gemini, so a
report URL is an SSRF vector. URLs are checked when a report is created and
again right before verification fetches the bytes.

Usage:
    from utils.url_validator import validate_image_url, image_mime_type

    is_valid, error = validate_image_url(report['image_url'])
"""

import ipaddress
from urllib.parse import urlparse
from typing import Optional, Tuple

MAX_URL_LENGTH = 2048

BLOCKED_HOSTNAMES = {'localhost', 'localhost.localdomain', 'metadata.google.internal'}

IMAGE_MIME_TYPES = {
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.png': 'image/png',
    '.gif': 'image/gif',
    '.webp': 'image/webp',
    '.bmp': 'image/bmp',
}


def _is_internal_address(hostname: str) -> bool:
    try:
        address = ipaddress.ip_address(hostname)
    except ValueError:
        return False
    return (address.is_private or address.is_loopback or address.is_link_local
            or address.is_reserved or address.is_unspecified)


def validate_image_url(url: str) -> Tuple[bool, Optional[str]]:
    """
    Check that a report image URL is safe for the server to fetch.

    Rules: HTTPS only, at most 2048 characters, no loopback/private/link-local
    hosts, and a path ending in a known image extension.

    Returns:
        (True, None) if valid, (False, error_message) otherwise

    Examples:
        >>> validate_image_url('https://example.com/flood.jpg')
        (True, None)
        >>> validate_image_url('http://example.com/flood.jpg')
        (False, 'Only HTTPS URLs are allowed')
        >>> validate_image_url('https://10.0.0.5/flood.jpg')
        (False, 'Private network URLs not allowed')
    """
    if not url:
        return True, None

    if not isinstance(url, str):
        return False, 'URL must be a string'

    if len(url) > MAX_URL_LENGTH:
        return False, f'URL too long (max {MAX_URL_LENGTH} characters)'

    try:
        parsed = urlparse(url)
        hostname = parsed.hostname
    except ValueError:
        return False, 'Invalid URL format'

    if parsed.scheme != 'https':
        return False, 'Only HTTPS URLs are allowed'

    if not hostname:
        return False, 'Invalid hostname'

    if hostname.lower() in BLOCKED_HOSTNAMES:
        return False, 'Local URLs not allowed'

    if _is_internal_address(hostname):
        return False, 'Private network URLs not allowed'

    if image_mime_type(url) is None:
        return False, f"Only image files allowed: {', '.join(IMAGE_MIME_TYPES)}"

    return True, None


def image_mime_type(url: str) -> Optional[str]:
    """
    Guess the MIME type Gemini should be told from the URL's extension.

    Examples:
        >>> image_mime_type('https://example.com/a/b.PNG')
        'image/png'
        >>> image_mime_type('https://example.com/page.html') is None
        True
    """
    path = urlparse(url).path.lower()
    for extension, mime_type in IMAGE_MIME_TYPES.items():
        if path.endswith(extension):
            return mime_type
    return None
