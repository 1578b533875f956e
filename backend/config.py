"""
Configuration file for the Disaster Response Coordinator backend.
"""
import os
from dotenv import load_dotenv

load_dotenv()


class Config:
    """Base configuration"""
    # Flask
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    DEBUG = os.getenv('DEBUG', 'True').lower() == 'true'
    TESTING = False
    MAX_CONTENT_LENGTH = 10 * 1024 * 1024  # 10 MB
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    # Firebase
    FIREBASE_DATABASE_URL = os.getenv('FIREBASE_DATABASE_URL')

    # External lookup services
    GEMINI_API_KEY = os.getenv('GEMINI_API_KEY')
    GEMINI_MODEL = os.getenv('GEMINI_MODEL', 'gemini-2.0-flash')
    GOOGLE_MAPS_API_KEY = os.getenv('GOOGLE_MAPS_API_KEY')
    EXTERNAL_TIMEOUT_SECONDS = int(os.getenv('EXTERNAL_TIMEOUT_SECONDS', '15'))

    # Cache windows in minutes
    SOCIAL_MEDIA_CACHE_MINUTES = int(os.getenv('SOCIAL_MEDIA_CACHE_MINUTES', '5'))
    GEOCODE_CACHE_MINUTES = int(os.getenv('GEOCODE_CACHE_MINUTES', '60'))

    # Audit trail identity
    DEFAULT_ACTOR_ID = os.getenv('DEFAULT_ACTOR_ID', 'reliefAdmin')
    REQUIRE_ACTOR_ID = os.getenv('REQUIRE_ACTOR_ID', 'False').lower() == 'true'

    # CORS
    CORS_ORIGINS = os.getenv('CORS_ORIGINS', 'http://localhost:3000').split(',')

    # Rate Limiting
    RATELIMIT_ENABLED = os.getenv('RATE_LIMIT_ENABLED', 'True').lower() == 'true'
    RATELIMIT_STORAGE_URI = os.getenv('REDIS_URL', 'memory://')


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    CORS_ORIGINS = [origin for origin in os.getenv('FRONTEND_URL', '').split(',') if origin]


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    DEBUG = False
    RATELIMIT_ENABLED = False
    GEMINI_API_KEY = None
    GOOGLE_MAPS_API_KEY = 'test-maps-key'
    DEFAULT_ACTOR_ID = 'reliefAdmin'
    REQUIRE_ACTOR_ID = False


config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
