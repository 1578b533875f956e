"""
Test suite for the disaster response backend.

This package contains:
- fake_firebase.py: in-memory Realtime Database double used by every test
- test_*_service.py: service-level tests with mocked Gemini / Google Maps
- test_api.py: end-to-end API tests through the Flask test client

Run tests:
    pip install -e ".[test]"
    python -m pytest
"""
