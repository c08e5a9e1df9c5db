"""DRF exception handler that renders every failure as kind + message."""

import logging

from django.http import Http404
from rest_framework import exceptions as drf_exceptions
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from .exceptions import CoreError

logger = logging.getLogger(__name__)

_DRF_KINDS = {
    drf_exceptions.ValidationError: "validation",
    drf_exceptions.ParseError: "validation",
    drf_exceptions.NotAuthenticated: "unauthenticated",
    drf_exceptions.AuthenticationFailed: "unauthenticated",
    drf_exceptions.PermissionDenied: "forbidden",
    drf_exceptions.NotFound: "not_found",
    drf_exceptions.MethodNotAllowed: "method_not_allowed",
    drf_exceptions.Throttled: "throttled",
}


def _error_body(kind: str, message, details=None):
    body = {"error": {"kind": kind, "message": message}}
    if details:
        body["error"]["details"] = details
    return body


def _flatten_validation_detail(detail) -> str:
    if isinstance(detail, dict):
        field, errors = next(iter(detail.items()))
        return f"{field}: {_flatten_validation_detail(errors)}"
    if isinstance(detail, list) and detail:
        return _flatten_validation_detail(detail[0])
    return str(detail)


def structured_exception_handler(exc, context):
    if isinstance(exc, CoreError):
        return Response(_error_body(exc.kind, exc.message), status=exc.status_code)

    if isinstance(exc, Http404):
        exc = drf_exceptions.NotFound()

    response = exception_handler(exc, context)
    if response is None:
        # Unhandled errors become a generic 500 without leaking internals.
        logger.exception("Unhandled error in %s", context.get("view"))
        return Response(
            _error_body("internal", "Server error"),
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    kind = next(
        (k for cls, k in _DRF_KINDS.items() if isinstance(exc, cls)),
        "error",
    )
    if isinstance(exc, drf_exceptions.ValidationError):
        response.data = _error_body(
            kind, _flatten_validation_detail(exc.detail), details=exc.detail
        )
    else:
        response.data = _error_body(kind, str(getattr(exc, "detail", exc)))
    return response
