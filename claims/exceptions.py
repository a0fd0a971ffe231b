# claims/exceptions.py
"""
Typed failures of the claim / redemption core.

Services raise these; the HTTP layer maps ``code`` + ``status`` to JSON.
Nothing here is retried by the core.
"""


class ClaimError(Exception):
    code = "claim_error"
    status = 400
    default_message = "Request failed."

    def __init__(self, message: str = ""):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class ValidationError(ClaimError):
    code = "invalid_request"
    status = 400
    default_message = "Missing or malformed fields."


class UnderageError(ClaimError):
    code = "underage"
    status = 400
    default_message = "Under legal drinking age."


class DuplicateTodayError(ClaimError):
    code = "already_claimed_today"
    status = 409
    default_message = "You already claimed today."


class NotFoundError(ClaimError):
    code = "not_found"
    status = 404
    default_message = "Invalid token."


class AlreadyRedeemedError(ClaimError):
    code = "already_redeemed"
    status = 409
    default_message = "Already redeemed."


class ExpiredError(ClaimError):
    code = "expired"
    status = 410
    default_message = "Token expired."


class PersistenceError(ClaimError):
    code = "storage_error"
    status = 500
    default_message = "Could not save. Please try again."
