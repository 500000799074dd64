"""
Travel Detector API Handler

Lambda function behind API Gateway that ingests login events and reports
impossible travel relative to the user's adjacent logins.

Routes:
- POST /v1/ - Ingest a login and return travel verdicts
- GET /health - Health check

Environment variables:
- LOGIN_STORE_BACKEND: sqlite (default) or dynamodb (use dynamodb in AWS)
- LOGIN_EVENTS_TABLE: DynamoDB table for login events
- MAXMIND_DB_PATH: Path to the GeoLite2-City database (e.g. in a Lambda layer)
- TRAVEL_SUSPICIOUS_SPEED_KMH: Speed above which travel is suspicious
"""

import base64
import json
import logging
import os
import sys
from typing import Any, Dict

# Add shared modules to path
sys.path.insert(0, '/opt/python')
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../..'))

from shared.identity import (
    DuplicateEventError,
    GeoResolutionError,
    InvalidLoginRequestError,
    StorageUnavailableError,
    build_ingestion_service,
    load_config,
    parse_login_body,
)

logger = logging.getLogger()
logger.setLevel(logging.INFO)

# Lazy-initialized ingestion service
_service = None


def _get_service():
    """Get lazily-initialized ingestion service."""
    global _service
    if _service is None:
        config = load_config()
        logger.info(f"Initializing travel detector: {json.dumps(config.to_dict())}")
        _service = build_ingestion_service(config)
    return _service


def _cors_headers() -> Dict[str, str]:
    """Return CORS headers."""
    return {
        'Access-Control-Allow-Origin': '*',
        'Access-Control-Allow-Methods': 'POST, GET, OPTIONS',
        'Access-Control-Allow-Headers': 'Content-Type, Authorization',
    }


def _json_response(status_code: int, body: Any) -> Dict[str, Any]:
    """Create API Gateway proxy response."""
    return {
        'statusCode': status_code,
        'headers': {**_cors_headers(), 'Content-Type': 'application/json'},
        'body': json.dumps(body),
    }


def _error_response(status_code: int, message: str) -> Dict[str, Any]:
    return _json_response(status_code, {'error': message})


def _normalize_path(path: str) -> str:
    path = path or '/'
    return path if path.endswith('/') else path + '/'


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Handle travel detector API requests.

    Routes:
    - POST /v1/ - Ingest login
    - GET /health - Health check
    """
    method = event.get('httpMethod', 'GET')
    path = _normalize_path(event.get('path', '/'))

    if method == 'OPTIONS':
        return {'statusCode': 204, 'headers': _cors_headers(), 'body': ''}

    logger.info(f"Travel detector request: {method} {path}")

    if path == '/health/':
        if method != 'GET':
            return _error_response(405, 'Method not allowed')
        return _json_response(200, {'status': 'healthy'})

    if path != '/v1/':
        return _error_response(404, 'Not found')
    if method != 'POST':
        return _error_response(405, 'Method not allowed')

    return handle_ingest_login(event)


def handle_ingest_login(event: Dict[str, Any]) -> Dict[str, Any]:
    """Ingest the login in the request body and report travel verdicts."""
    try:
        body = event.get('body')
        if body and event.get('isBase64Encoded'):
            body = base64.b64decode(body)

        payload = parse_login_body(body)
        assessment = _get_service().ingest(payload)
        return _json_response(200, assessment.to_response())

    except InvalidLoginRequestError as e:
        logger.info(f"Rejected login request: {e}")
        return _error_response(400, str(e))
    except DuplicateEventError as e:
        return _error_response(409, str(e))
    except GeoResolutionError as e:
        return _error_response(422, str(e))
    except StorageUnavailableError as e:
        logger.error(f"Login store unavailable: {e}")
        return _error_response(503, 'Login store unavailable')
    except Exception as e:
        logger.exception(f"Unexpected error ingesting login: {e}")
        return _error_response(500, 'Internal server error')
