"""
Log redaction helpers.

Disaster descriptions and report content are free text written during an
emergency and routinely contain phone numbers and e-mail addresses. Actor ids
are hashed so logs can still be correlated per responder.

Usage:
    from utils.secure_logging import redact_pii, hash_user_id

    logger.info(f"Report from {hash_user_id(user_id)}: {redact_pii(content)}")
"""

import re
import hashlib

_EMAIL = re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b')
_IPV4 = re.compile(r'\b(?:\d{1,3}\.){3}\d{1,3}\b')
_PHONE = re.compile(r'(?<!\w)\+?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}\b')


def redact_pii(text: str) -> str:
    """
    Replace e-mail addresses, IPv4 addresses and phone numbers.

    Examples:
        >>> redact_pii('Call 555-123-4567 or mail jane@example.com')
        'Call [PHONE_REDACTED] or mail [EMAIL_REDACTED]'
    """
    if not text:
        return text

    text = _EMAIL.sub('[EMAIL_REDACTED]', text)
    text = _IPV4.sub('[IP_REDACTED]', text)
    text = _PHONE.sub('[PHONE_REDACTED]', text)
    return text


def hash_user_id(user_id: str, length: int = 16) -> str:
    """
    One-way SHA-256 digest of an actor id, truncated to `length` characters.

    The same id always hashes to the same value.
    """
    if not user_id:
        return '[NO_USER_ID]'

    return hashlib.sha256(str(user_id).encode()).hexdigest()[:length]
