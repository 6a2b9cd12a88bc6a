"""
Error taxonomy shared by the services.
Each error carries the HTTP status the API layer reports for it.
"""


class CardMatchError(Exception):
    """Base class for errors surfaced to API callers"""

    status_code = 500

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class PreconditionError(CardMatchError):
    """Request rejected before any external call was made"""

    status_code = 400


class AuthorizationError(CardMatchError):
    status_code = 401


class ExtractionError(CardMatchError):
    """No usable text or JSON could be produced from the submitted files"""

    status_code = 422


class OracleError(CardMatchError):
    """The language-model service failed or was unreachable"""

    status_code = 502


class OracleTimeoutError(OracleError):
    status_code = 504


class OracleResponseError(OracleError):
    """The language-model service answered with a payload that failed decoding"""


class RecommendationError(CardMatchError):
    status_code = 502


class PersistenceError(CardMatchError):
    status_code = 500
