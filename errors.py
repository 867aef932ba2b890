"""
Error taxonomy for the relay.

Every failure a route can report is a RelayError subclass carrying its HTTP
status and a machine-readable code; main.py renders them through
backend.utils.responses.error_response.
"""

from typing import Any, Dict, Optional


class RelayError(Exception):
    status_code = 500
    code = "internal_error"
    default_message = "An unexpected error occurred."

    def __init__(self, message: Optional[str] = None, data: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_message
        self.data = data or {}
        super().__init__(self.message)


class InvalidRequest(RelayError):
    status_code = 400
    code = "invalid_request"
    default_message = "Invalid request."


class InvalidRedirect(RelayError):
    status_code = 400
    code = "invalid_redirect_uri"
    default_message = "Invalid redirect_uri"


class InvalidCallback(RelayError):
    status_code = 400
    code = "invalid_callback"
    default_message = "Missing authorization code or state parameter"


class UnsupportedGrantType(RelayError):
    status_code = 400
    code = "unsupported_grant_type"
    default_message = "Unsupported grant type"


class InvalidClient(RelayError):
    status_code = 401
    code = "invalid_client"
    default_message = "Invalid client credentials"


class UpstreamExchangeFailed(RelayError):
    status_code = 500
    code = "upstream_exchange_failed"
    default_message = "Failed to exchange code for tokens"


class ReauthorizationRequired(RelayError):
    status_code = 401
    code = "reauthorization_required"
    default_message = "Authorization required. Please sign in again."


class IdentityUnavailable(RelayError):
    status_code = 400
    code = "identity_unavailable"
    default_message = "Unable to retrieve user email"


class QuotaExceeded(RelayError):
    status_code = 402
    code = "quota_exceeded"
    default_message = "Free usage limit reached. Please upgrade your plan to continue using the service."


class InvalidSchema(RelayError):
    status_code = 400
    code = "invalid_schema"
    default_message = "Invalid request body"


class UnsupportedQuestionType(RelayError):
    status_code = 400
    code = "unsupported_question_type"

    def __init__(self, question_type: Any, position: Optional[int] = None):
        self.question_type = question_type
        data = {"type": question_type}
        if position is not None:
            data["position"] = position
        super().__init__(f"Unsupported question type: {question_type}", data)


class RemoteFormCreationFailed(RelayError):
    status_code = 500
    code = "remote_form_creation_failed"

    def __init__(self, phase: str, form_id: Optional[str] = None, reason: Optional[str] = None):
        self.phase = phase
        self.form_id = form_id
        message = f"An error occurred while creating the form (phase: {phase})."
        self.reason = reason
        super().__init__(message, {"phase": phase, "form_id": form_id})


class InvalidWebhookSignature(RelayError):
    status_code = 400
    code = "invalid_webhook_signature"
    default_message = "Invalid webhook signature"


class PersistenceUnavailable(RelayError):
    status_code = 503
    code = "persistence_unavailable"
    default_message = "Storage is temporarily unavailable."


class BillingUnavailable(RelayError):
    status_code = 500
    code = "billing_unavailable"
    default_message = "An error occurred while creating the checkout session."
