"""Denial and failure taxonomy for the public widget access layer.

Every error carries the HTTP status it maps to, a stable machine-readable
``code`` and a ``message`` that is safe to show to an embedding developer.
The translation to a response body happens once, in ``qaplus.main``.
"""


class PublicAccessError(Exception):
    status_code = 500
    code = "internal_error"
    message = "Internal error"

    def __init__(self, message: str | None = None, *, code: str | None = None):
        if message is not None:
            self.message = message
        if code is not None:
            self.code = code
        super().__init__(self.message)


class ConfigurationFault(PublicAccessError):
    """Data-integrity fault. Details go to the log, never to the caller."""

    status_code = 500
    code = "configuration_fault"
    message = "Service configuration error"


class TenantNotFound(ConfigurationFault):
    def __init__(self, tenant_id: str):
        self.tenant_id = tenant_id
        super().__init__()


class PlanNotFound(ConfigurationFault):
    def __init__(self, tenant_id: str, plan_code: str):
        self.tenant_id = tenant_id
        self.plan_code = plan_code
        super().__init__()


class ChatbotNotFound(PublicAccessError):
    status_code = 404
    code = "chatbot_not_found"
    message = "Chatbot not found"


class ChatbotInactive(PublicAccessError):
    status_code = 403
    code = "chatbot_inactive"
    message = "Chatbot is paused"


class AccessDenied(PublicAccessError):
    status_code = 403
    code = "DomainForbidden"
    message = "This chatbot can only be embedded on authorized websites"


WHITELIST_MESSAGES = {
    "MissingOrigin": "Request origin could not be determined; embedding requires an Origin or Referer header",
    "WhitelistNotConfigured": "Domain whitelist is not configured for this chatbot; add your domain to embed it",
    "DomainForbidden": "This domain is not on the chatbot's whitelist; ask the administrator to add it",
    "TenantSuspended": "This chatbot's account is suspended",
}


class SessionInvalid(PublicAccessError):
    status_code = 401
    code = "SessionNotFound"
    message = "Session token is invalid"

    _by_reason = {
        "SessionNotFound": (401, "Session token is invalid"),
        "SessionExpired": (401, "Session expired; request a new session"),
        "SessionChatbotMismatch": (401, "Session token does not belong to this chatbot"),
        "SessionExhausted": (429, "Session query limit reached; request a new session"),
    }

    def __init__(self, reason: str):
        self.reason = reason
        self.status_code, message = self._by_reason.get(reason, (401, self.message))
        super().__init__(message, code=reason)


class QuotaExceeded(PublicAccessError):
    status_code = 429
    code = "TenantQuotaExceeded"
    message = "This chatbot is temporarily unavailable, please try again later"


class RateLimited(PublicAccessError):
    status_code = 429
    code = "RateLimited"
    message = "Too many requests, please slow down"


class LookupUnavailable(PublicAccessError):
    status_code = 503
    code = "service_unavailable"
    message = "Service temporarily unavailable"


class AnsweringFailed(PublicAccessError):
    status_code = 503
    code = "answering_unavailable"
    message = "Unable to answer right now, please try again"
