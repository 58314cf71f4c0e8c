"""
Error taxonomy shared by the gateway and the conversation controller.

Every failure that can end a turn is one of these.  The gateway maps them
to HTTP status codes; the controller maps them to a failed exchange.
"""
from __future__ import annotations


class InvoiceChatError(Exception):
    """Base class for all expected failures."""

    kind = "error"
    status_code = 500

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(message)
        self.message = message
        self.detail = detail


class ValidationError(InvoiceChatError):
    """Required input missing or empty; rejected before any external call."""

    kind = "validation"
    status_code = 400


class PolicyViolation(InvoiceChatError):
    """Statement refused by the read-only policy; no connection is acquired."""

    kind = "policy"
    status_code = 403


class TransportError(InvoiceChatError):
    """The model service or the gateway could not be reached or answered badly."""

    kind = "transport"
    status_code = 502


class UpstreamQueryError(InvoiceChatError):
    """The database rejected or failed the SQL.  Message is the driver's, verbatim."""

    kind = "query"
    status_code = 400


class MalformedResponseError(InvoiceChatError):
    """The model reply did not match the {sqlQuery, explanation} contract."""

    kind = "malformed"
    status_code = 502
