from flask import Blueprint, Flask, current_app, jsonify, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_socketio import SocketIO
from firebase_admin.exceptions import FirebaseError
from werkzeug.exceptions import HTTPException
import os
import logging
from functools import wraps

from config import config
from firebase_setup import initialize_firebase
from services.cache_manager import CacheManager
from services.disaster_service import ADMIN_ROLE, DisasterService
from services.gemini_service import GeminiService
from services.geocoding_service import GeocodingService
from services.notifier import ChangeNotifier
from services.report_service import ReportService, fetch_image
from services.social_media_service import SocialMediaService
from utils.errors import DisasterResponseError, ForbiddenError

logger = logging.getLogger(__name__)

# Rate Limiting Configuration
# Storage comes from RATELIMIT_STORAGE_URI (REDIS_URL in production, memory:// otherwise)
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["2000 per day", "300 per hour"]
)

# Push channel for disaster_updated / new_report / report_updated
socketio = SocketIO()

api = Blueprint('api', __name__, url_prefix='/api')


def _services():
    return current_app.extensions['disaster_response']


def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


# ===== MIDDLEWARE & DECORATORS =====

def require_admin_role(f):
    """
    Decorator to require the admin role for endpoints.
    The role travels in the X-User-Role header.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        role = request.headers.get('X-User-Role')
        if role != ADMIN_ROLE:
            logger.warning(f"Rejected {request.method} {request.path}: role {role!r}")
            raise ForbiddenError('Forbidden: admin role required.')
        return f(*args, **kwargs)

    return decorated_function


def set_security_headers(response):
    """
    Add security headers to all responses.

    - HSTS: Forces HTTPS for 1 year (only in production)
    - X-Frame-Options: Prevents clickjacking
    - X-Content-Type-Options: Prevents MIME sniffing
    - Referrer-Policy: Controls referrer information leakage
    """
    if os.getenv('FLASK_ENV') == 'production':
        response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'

    response.headers['X-Frame-Options'] = 'DENY'
    response.headers['X-Content-Type-Options'] = 'nosniff'
    response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'
    return response


# ===== ERROR HANDLERS =====

def handle_service_error(error):
    """Map the service error taxonomy to JSON responses."""
    if error.status_code >= 500:
        logger.error(f"{type(error).__name__}: {error}")
    return jsonify(error.to_dict()), error.status_code


def handle_store_error(error):
    """Firebase failures are logged server-side only."""
    logger.error(f"Firebase error: {error}")
    return jsonify({'error': 'Internal server error'}), 500


def handle_http_error(error):
    """
    Handle framework errors (404 route, 405, 413 payload too large, 429 rate limit).
    """
    body = {'error': error.name, 'message': error.description}
    if error.code == 413:
        body['max_size'] = '10 MB'
    return jsonify(body), error.code


def handle_unexpected_error(error):
    logger.exception(f"Unhandled error: {error}")
    return jsonify({'error': 'Internal server error'}), 500


# ===== HEALTH =====

@api.route('/health', methods=['GET'])
def health_check():
    """Health check endpoint"""
    return jsonify({'status': 'healthy', 'service': 'disaster-response-api'})


# ===== DISASTERS =====

@api.route('/disasters', methods=['POST'])
@limiter.limit("60 per hour")
def create_disaster():
    """Create a disaster (title and owner_id required)"""
    disaster = _services()['disasters'].create_disaster(_json_body())
    return jsonify(disaster), 201


@api.route('/disasters', methods=['GET'])
def list_disasters():
    """
    List disasters, newest first.

    Query Parameters:
        - tag (optional): only disasters whose tags contain this value
    """
    tag = request.args.get('tag') or None
    return jsonify(_services()['disasters'].list_disasters(tag=tag))


@api.route('/disasters/<disaster_id>', methods=['GET'])
def get_disaster(disaster_id):
    return jsonify(_services()['disasters'].get_disaster(disaster_id))


@api.route('/disasters/<disaster_id>', methods=['PUT'])
@limiter.limit("120 per hour")
def update_disaster(disaster_id):
    """
    Update a disaster and append an audit entry.

    Headers:
        - X-User-Id (optional): actor recorded in the audit trail
    """
    actor_id = request.headers.get('X-User-Id')
    disaster = _services()['disasters'].update_disaster(disaster_id, _json_body(), actor_id=actor_id)
    return jsonify(disaster), 200


@api.route('/disasters/<disaster_id>', methods=['DELETE'])
def delete_disaster(disaster_id):
    """
    Delete a disaster.

    Headers:
        - X-User-Role: must be "admin", otherwise 403
    """
    _services()['disasters'].delete_disaster(disaster_id, request.headers.get('X-User-Role'))
    return '', 204


@api.route('/disasters/<disaster_id>/social-media', methods=['GET'])
def get_social_media(disaster_id):
    """Mock social media posts for a disaster, cached for a few minutes"""
    return jsonify(_services()['social_media'].get_posts(disaster_id))


@api.route('/disasters/<disaster_id>/reports', methods=['GET'])
def list_disaster_reports(disaster_id):
    return jsonify(_services()['reports'].list_reports(disaster_id))


# ===== REPORTS =====

@api.route('/reports', methods=['POST'])
@limiter.limit("60 per hour")
def create_report():
    """Create a situation report for an existing disaster"""
    report = _services()['reports'].create_report(_json_body())
    return jsonify(report), 201


@api.route('/reports/<report_id>', methods=['GET'])
def get_report(report_id):
    return jsonify(_services()['reports'].get_report(report_id))


@api.route('/reports/<report_id>/verify', methods=['POST'])
@limiter.limit("30 per hour")  # Each call is a Gemini vision request
def verify_report(report_id):
    """Classify the report image as verified, fake, or unclear"""
    return jsonify(_services()['reports'].verify_report(report_id))


# ===== SERVICES =====

@api.route('/services/geocode', methods=['POST'])
@limiter.limit("60 per hour")  # Gemini + Google Maps on every cache miss
def geocode():
    """Extract a location from a description and resolve its coordinates"""
    description = _json_body().get('description')
    return jsonify(_services()['geocoding'].geocode_description(description))


# ===== CACHE ADMIN =====

@api.route('/cache/clear', methods=['POST'])
@require_admin_role
def clear_cache():
    """Clear one cache key or the whole cache (admin only)"""
    key = _json_body().get('key')
    _services()['cache'].clear_cache(key)
    return jsonify({'status': 'cleared', 'key': key or 'all'})


@api.route('/cache/purge', methods=['POST'])
@require_admin_role
def purge_cache():
    """Remove expired cache rows (admin only)"""
    purged = _services()['cache'].purge_expired()
    return jsonify({'status': 'purged', 'purged': purged})


# ===== SOCKET EVENTS =====

@socketio.on('connect')
def handle_connect():
    logger.info(f"Socket connected: {request.sid}")


@socketio.on('disconnect')
def handle_disconnect(*args):
    logger.info(f"Socket disconnected: {request.sid}")


# ===== APP FACTORY =====

def create_app(config_name=None, firebase_db=None, gemini_service=None, notifier=None,
               clock=None, social_generator=None, image_fetcher=None):
    """
    Build the Flask app.

    Without `firebase_db` the Firebase app is initialized from the
    environment; missing store credentials raise ValueError and abort startup.
    The remaining keyword arguments replace external collaborators in tests.
    """
    config_name = config_name or os.getenv('FLASK_ENV', 'default')
    app = Flask(__name__)
    app.config.from_object(config.get(config_name, config['default']))

    logging.basicConfig(
        level=getattr(logging, str(app.config['LOG_LEVEL']).upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    if firebase_db is None:
        try:
            firebase_db = initialize_firebase(app.config['FIREBASE_DATABASE_URL'])
        except ValueError as e:
            logger.error(f"Firebase initialization failed: {e}")
            logger.error("Set FIREBASE_DATABASE_URL and FIREBASE_CREDENTIALS_BASE64 or FIREBASE_CREDENTIALS_PATH")
            raise

    CORS(app, origins=app.config['CORS_ORIGINS'])
    limiter.init_app(app)
    socketio.init_app(app, cors_allowed_origins=app.config['CORS_ORIGINS'])

    notifier = notifier or ChangeNotifier(socketio)
    gemini_service = gemini_service or GeminiService(app.config['GEMINI_API_KEY'], app.config['GEMINI_MODEL'])
    timeout = app.config['EXTERNAL_TIMEOUT_SECONDS']

    cache_manager = CacheManager(firebase_db, clock=clock)
    disaster_service = DisasterService(
        firebase_db,
        notifier,
        clock=clock,
        default_actor_id=app.config['DEFAULT_ACTOR_ID'],
        require_actor_id=app.config['REQUIRE_ACTOR_ID']
    )

    app.extensions['disaster_response'] = {
        'cache': cache_manager,
        'disasters': disaster_service,
        'reports': ReportService(
            firebase_db,
            notifier,
            gemini_service,
            disaster_service,
            image_fetcher=image_fetcher or (lambda url: fetch_image(url, timeout=timeout)),
            clock=clock
        ),
        'social_media': SocialMediaService(
            cache_manager,
            generator=social_generator,
            ttl_minutes=app.config['SOCIAL_MEDIA_CACHE_MINUTES']
        ),
        'geocoding': GeocodingService(
            cache_manager,
            gemini_service,
            app.config['GOOGLE_MAPS_API_KEY'],
            ttl_minutes=app.config['GEOCODE_CACHE_MINUTES'],
            timeout=timeout
        ),
    }

    app.register_blueprint(api)
    app.after_request(set_security_headers)
    app.register_error_handler(DisasterResponseError, handle_service_error)
    app.register_error_handler(FirebaseError, handle_store_error)
    app.register_error_handler(HTTPException, handle_http_error)
    app.register_error_handler(Exception, handle_unexpected_error)

    logger.info(f"Disaster response API ready ({config_name})")
    return app


if __name__ == '__main__':
    app = create_app()
    debug_mode = os.getenv('FLASK_DEBUG', 'False').lower() == 'true'
    socketio.run(
        app,
        debug=debug_mode,
        host='0.0.0.0',
        port=int(os.getenv('PORT', '5001')),
        allow_unsafe_werkzeug=True
    )
