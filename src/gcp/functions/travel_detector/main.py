"""
Travel Detector - GCP Cloud Function

Ingests login events and reports impossible travel relative to the user's
adjacent logins. Also runnable as a standalone HTTP server on port 8080.

Endpoints:
- POST /v1/ - Ingest a login and return travel verdicts
- GET /health - Health check

Environment variables:
- LOGIN_STORE_BACKEND: sqlite (default), dynamodb, or memory for local testing
- LOGIN_DB_PATH: SQLite database path (default ./data.db)
- MAXMIND_DB_PATH: Path to the GeoLite2-City database
- TRAVEL_SUSPICIOUS_SPEED_KMH: Speed above which travel is suspicious
- TRAVEL_CONFIG_FILE: Optional YAML config file overriding the environment
"""

import json
import logging
import os
import sys
from typing import Any, Dict

import functions_framework
from flask import Request

# Add shared modules path
sys.path.insert(0, '/workspace')
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../../..'))

from shared.identity import (
    DuplicateEventError,
    GeoResolutionError,
    InvalidLoginRequestError,
    StorageUnavailableError,
    build_ingestion_service,
    load_config,
    parse_login_body,
)

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Lazy-initialized ingestion service
_service = None


def _get_service():
    """Get lazily-initialized ingestion service."""
    global _service
    if _service is None:
        _service = build_ingestion_service(load_config())
    return _service


def _cors_headers() -> Dict[str, str]:
    """Return CORS headers."""
    return {
        'Access-Control-Allow-Origin': '*',
        'Access-Control-Allow-Methods': 'POST, GET, OPTIONS',
        'Access-Control-Allow-Headers': 'Content-Type, Authorization',
    }


def _json_response(data: Any, status: int = 200) -> tuple:
    """Create JSON response with CORS headers."""
    return (
        json.dumps(data),
        status,
        {**_cors_headers(), 'Content-Type': 'application/json'},
    )


def _error_response(message: str, status: int = 400) -> tuple:
    """Create error response."""
    return _json_response({'error': message}, status)


def handle_ingest_login(request: Request) -> tuple:
    """Ingest the login in the request body and report travel verdicts."""
    try:
        payload = parse_login_body(request.get_data())
        assessment = _get_service().ingest(payload)
        return _json_response(assessment.to_response())

    except InvalidLoginRequestError as e:
        logger.info(f"Rejected login request: {e}")
        return _error_response(str(e), 400)
    except DuplicateEventError as e:
        return _error_response(str(e), 409)
    except GeoResolutionError as e:
        return _error_response(str(e), 422)
    except StorageUnavailableError as e:
        logger.error(f"Login store unavailable: {e}")
        return _error_response('Login store unavailable', 503)


@functions_framework.http
def travel_detector(request: Request) -> tuple:
    """Main entry point for the Travel Detector function."""
    if request.method == 'OPTIONS':
        return ('', 204, _cors_headers())

    path = request.path if request.path.endswith('/') else request.path + '/'
    method = request.method

    logger.info(f"Travel detector request: {method} {path}")

    try:
        if path == '/health/':
            if method != 'GET':
                return _error_response('Method not allowed', 405)
            return _json_response({'status': 'healthy'})

        if path != '/v1/':
            return _error_response('Not found', 404)
        if method != 'POST':
            return _error_response('Method not allowed', 405)

        return handle_ingest_login(request)

    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return _error_response('Internal server error', 500)


# For local serving
if __name__ == '__main__':
    from flask import Flask

    app = Flask(__name__)

    @app.route('/', defaults={'path': ''}, methods=['GET', 'POST', 'OPTIONS'])
    @app.route('/<path:path>', methods=['GET', 'POST', 'OPTIONS'])
    def handle(path):
        from flask import request
        return travel_detector(request)

    logger.info("Running travel detector on port 8080")
    app.run(host='0.0.0.0', port=int(os.environ.get('PORT', '8080')))
