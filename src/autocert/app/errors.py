"""RFC 7807 Problem Details for the HTTP trigger.

A run that fails fatally (authority, store, or malformed record) is
rendered as an ``application/problem+json`` 500 response; any other
error goes through the generic handlers.

Usage::

    raise Problem(RUN_FAILED, "ACME server error: ...", 500)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from flask import jsonify
from werkzeug.exceptions import HTTPException

from autocert.authority.base import AuthorityError
from autocert.models.record import MalformedRecordError
from autocert.runners.base import TargetConfigError
from autocert.store.base import SecretStoreError

if TYPE_CHECKING:
    from flask import Flask, Response

log = logging.getLogger(__name__)

_P = "urn:autocert:error:"

AUTHORITY = _P + "authority"
SECRET_STORE = _P + "secretStore"
MALFORMED_RECORD = _P + "malformedRecord"
CONFIGURATION = _P + "configuration"
SERVER_INTERNAL = _P + "serverInternal"

PROBLEM_CONTENT_TYPE = "application/problem+json"

_FATAL_TYPES: tuple[tuple[type[Exception], str], ...] = (
    (AuthorityError, AUTHORITY),
    (SecretStoreError, SECRET_STORE),
    (MalformedRecordError, MALFORMED_RECORD),
    (TargetConfigError, CONFIGURATION),
)


class Problem(Exception):
    """An RFC 7807 *problem details* object that doubles as an exception.

    Parameters
    ----------
    error_type:
        A URN string (one of the constants above) or ``"about:blank"``.
    detail:
        Human-readable explanation of the problem.
    status:
        HTTP status code (default 500).
    title:
        Short summary; omitted when *error_type* is self-explanatory.
    retryable:
        Included in the body when not ``None``.

    """

    def __init__(
        self,
        error_type: str,
        detail: str,
        status: int = 500,
        *,
        title: str | None = None,
        retryable: bool | None = None,
    ) -> None:
        self.error_type = error_type
        self.detail = detail
        self.status = status
        self.title = title
        self.retryable = retryable
        super().__init__(detail)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "type": self.error_type,
            "detail": self.detail,
            "status": self.status,
        }
        if self.title is not None:
            body["title"] = self.title
        if self.retryable is not None:
            body["retryable"] = self.retryable
        return body

    def to_response(self) -> Response:
        resp = jsonify(self.to_dict())
        resp.status_code = self.status
        resp.headers["Content-Type"] = PROBLEM_CONTENT_TYPE
        resp.headers["Cache-Control"] = "no-store"
        return resp


def problem_for(exc: Exception) -> Problem:
    """Translate a fatal run error into a :class:`Problem`."""
    for exc_type, error_type in _FATAL_TYPES:
        if isinstance(exc, exc_type):
            return Problem(
                error_type,
                str(exc),
                500,
                title="Certificate run failed",
                retryable=getattr(exc, "retryable", None),
            )
    return Problem(SERVER_INTERNAL, "An unexpected internal error occurred", 500)


def register_error_handlers(app: Flask) -> None:
    """Attach handlers that produce RFC 7807 responses for all errors."""

    @app.errorhandler(Problem)
    def _handle_problem(exc: Problem) -> Response:
        return exc.to_response()

    @app.errorhandler(HTTPException)
    def _handle_http_exception(exc: HTTPException) -> Response:
        problem = Problem(
            "about:blank",
            exc.description or "An error occurred",
            exc.code or 500,
            title=exc.name,
        )
        return problem.to_response()

    @app.errorhandler(Exception)
    def _handle_unhandled(exc: Exception) -> Response:
        if isinstance(exc, tuple(t for t, _ in _FATAL_TYPES)):
            log.error("Run failed: %s", exc)  # noqa: TRY400
        else:
            log.exception("Unhandled exception during request")
        return problem_for(exc).to_response()
