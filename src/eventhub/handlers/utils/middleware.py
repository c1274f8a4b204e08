"""
Response wrapper shared by every HTTP route.

``with_middleware`` runs a route function and always returns a powertools
``Response``: successful results are wrapped as ``{"success": true, "data": ...}``
and any raised error becomes ``{"success": false, "error": {...}, "data": null}``
with the status code resolved from the error taxonomy.
"""

import functools
import json
import os
import time
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Dict, List, Mapping, Optional, Type, TypeVar

from aws_lambda_powertools.event_handler import Response, content_types
from aws_lambda_powertools.metrics import MetricUnit
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from eventhub.handlers.utils.errors import (
    BadRequestError,
    HttpError,
    RateLimitedError,
    ValidationError,
    get_error_status_code,
    log_error_metrics,
)
from eventhub.handlers.utils.observability import logger, metrics

GENERIC_ERROR_MESSAGE = 'Internal server error'

M = TypeVar('M', bound=BaseModel)


@dataclass
class CorsOptions:
    """CORS headers attached to every response."""

    origin: str = '*'
    methods: List[str] = field(default_factory=lambda: ['GET', 'POST', 'PUT', 'PATCH', 'DELETE', 'OPTIONS'])
    headers: List[str] = field(default_factory=lambda: ['Content-Type', 'Authorization'])
    credentials: bool = False

    def to_headers(self) -> Dict[str, str]:
        cors_headers = {
            'Access-Control-Allow-Origin': self.origin,
            'Access-Control-Allow-Methods': ', '.join(self.methods),
            'Access-Control-Allow-Headers': ', '.join(self.headers),
        }
        if self.credentials:
            cors_headers['Access-Control-Allow-Credentials'] = 'true'
        return cors_headers


@dataclass
class MiddlewareOptions:
    """Per-route configuration of the response wrapper."""

    cors: Optional[CorsOptions] = field(default_factory=CorsOptions)
    # Overrides keyed by error class name or error code, checked before the defaults
    custom_error_map: Dict[str, int] = field(default_factory=dict)
    format_response: bool = True
    error_logging: bool = True


@dataclass
class HandlerResponse:
    """Route result that carries an explicit status code or extra headers."""

    data: Any = None
    status_code: int = 200
    headers: Dict[str, str] = field(default_factory=dict)


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, BaseModel):
        return value.model_dump(mode='json', by_alias=True, exclude_none=True)
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    raise TypeError(f'Object of type {type(value).__name__} is not JSON serializable')


def to_json(value: Any) -> str:
    """Serialize a response payload, handling Decimal, datetime and pydantic models."""
    return json.dumps(value, default=_json_default)


def _is_production() -> bool:
    return os.environ.get('ENVIRONMENT', '').lower() in ('prod', 'production')


def _unpack_result(result: Any):
    if isinstance(result, HandlerResponse):
        return result.data, result.status_code, result.headers
    if isinstance(result, dict) and isinstance(result.get('statusCode'), int):
        data = result['data'] if 'data' in result else result.get('body')
        return data, result['statusCode'], result.get('headers') or {}
    return result, 200, {}


def _base_headers(options: MiddlewareOptions) -> Dict[str, str]:
    headers = {'Content-Type': content_types.APPLICATION_JSON}
    if options.cors:
        headers.update(options.cors.to_headers())
    return headers


def _success_response(result: Any, options: MiddlewareOptions) -> Response:
    if isinstance(result, Response):
        return result

    data, status_code, custom_headers = _unpack_result(result)
    body = {'success': True, 'data': data} if options.format_response else data

    headers = _base_headers(options)
    headers.update(custom_headers)

    return Response(
        status_code=status_code,
        content_type=content_types.APPLICATION_JSON,
        body=to_json(body),
        headers=headers,
    )


def _error_response(error: Exception, options: MiddlewareOptions, route_name: str, started_at: float) -> Response:
    status_code = get_error_status_code(error, options.custom_error_map)

    if options.error_logging:
        log_error_metrics(error, status_code)
        logger.debug('Route failed', extra={
            'route': route_name,
            'execution_time_ms': round((time.time() - started_at) * 1000, 2),
        })

    if isinstance(error, HttpError):
        error_body = error.to_dict()
    elif _is_production():
        error_body = {'message': GENERIC_ERROR_MESSAGE, 'code': 'INTERNAL_ERROR'}
    else:
        error_body = {'message': str(error) or GENERIC_ERROR_MESSAGE, 'code': getattr(error, 'code', None) or type(error).__name__}

    if not isinstance(error, HttpError) and status_code == 500:
        metrics.add_metric(name='UnexpectedError', unit=MetricUnit.Count, value=1)

    headers = _base_headers(options)
    if isinstance(error, RateLimitedError) and error.retry_after:
        headers['Retry-After'] = str(error.retry_after)

    return Response(
        status_code=status_code,
        content_type=content_types.APPLICATION_JSON,
        body=to_json({'success': False, 'error': error_body, 'data': None}),
        headers=headers,
    )


def _last_resort_response(options: MiddlewareOptions) -> Response:
    try:
        headers = _base_headers(options)
    except Exception:
        logger.exception('Failed to build CORS headers')
        headers = {'Content-Type': content_types.APPLICATION_JSON}
    return Response(
        status_code=500,
        content_type=content_types.APPLICATION_JSON,
        body='{"success": false, "error": {"message": "Internal server error", "code": "INTERNAL_ERROR"}, "data": null}',
        headers=headers,
    )


def with_middleware(handler: Optional[Callable] = None, *, options: Optional[MiddlewareOptions] = None):
    """
    Wrap a route function with response formatting and error mapping.

    Usable bare (``@with_middleware``) or configured
    (``@with_middleware(options=MiddlewareOptions(...))``). The wrapped function
    never raises: every branch returns a well formed ``Response``.

    Args:
        handler: Route function when used bare
        options: Wrapper configuration

    Returns:
        The wrapped route function or a decorator
    """
    middleware_options = options or MiddlewareOptions()

    def decorator(func: Callable) -> Callable[..., Response]:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> Response:
            started_at = time.time()
            try:
                return _success_response(func(*args, **kwargs), middleware_options)
            except Exception as error:
                try:
                    return _error_response(error, middleware_options, func.__name__, started_at)
                except Exception:
                    logger.exception('Failed to build error response', extra={'route': func.__name__})
                    return _last_resort_response(middleware_options)

        return wrapper

    if handler is not None:
        return decorator(handler)
    return decorator


def parse_json_body(body: Optional[str]) -> Dict[str, Any]:
    """
    Parse a request body that must be a JSON object.

    Raises:
        BadRequestError: If the body is missing, not JSON, or not an object
    """
    if not body:
        raise BadRequestError('Request body is required')

    try:
        parsed = json.loads(body)
    except json.JSONDecodeError:
        raise BadRequestError('Invalid JSON in request body')

    if not isinstance(parsed, dict):
        raise BadRequestError('Request body must be a JSON object')
    return parsed


def parse_request_model(model: Type[M], data: Mapping[str, Any]) -> M:
    """
    Validate request data against a pydantic model.

    Raises:
        ValidationError: With per-field messages when validation fails
    """
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        field_errors = [
            {'field': '.'.join(str(part) for part in error['loc']), 'message': error['msg']}
            for error in e.errors()
        ]
        raise ValidationError('Request validation failed', details={'fieldErrors': field_errors})
