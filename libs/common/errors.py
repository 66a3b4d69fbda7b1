"""Error taxonomy shared by the coaching core and the serverless functions.

Every failure the application can observe resolves to one of these classes:

- ``TransportError``: no usable response from a remote service. The only
  retryable kind.
- ``AuthenticationError`` / ``AuthorizationError``: missing session or a
  principal without rights (row-level policy, plan limits, role checks).
- ``FieldValidationError``: client-side shape checks that block an action
  before any network call.
- ``NotFoundError``: a lookup that required a row and found none. Lookups for
  which absence is a normal state return ``None`` instead of raising.
- ``ConflictError``: uniqueness, foreign key or check constraint violations.
- ``ProviderError``: payment or email provider answered with a failure.
- ``ConfigurationError``: missing environment configuration.
- ``BackendError``: any other rejection from the hosted backend.
"""

from typing import Any, Optional


class CoachingError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500
    retryable: bool = False
    public_message: str = "Une erreur est survenue"

    def __init__(self, message: str, *, code: Optional[str] = None):
        self.message = message
        self.code = code
        super().__init__(message)


class TransportError(CoachingError):
    status_code = 503
    retryable = True
    public_message = "Service temporairement indisponible, veuillez réessayer"


class AuthenticationError(CoachingError):
    status_code = 401
    public_message = "Session invalide ou expirée"


class AuthorizationError(CoachingError):
    status_code = 403
    public_message = "Vous n'avez pas les permissions nécessaires"


class FieldValidationError(CoachingError):
    status_code = 422

    def __init__(self, message: str, *, field: Optional[str] = None):
        self.field = field
        super().__init__(message, code="validation_error")

    @property
    def public_message(self) -> str:  # type: ignore[override]
        return self.message


class NotFoundError(CoachingError):
    status_code = 404
    public_message = "Ressource introuvable"


class ConflictError(CoachingError):
    status_code = 409
    public_message = "Cette ressource existe déjà ou est référencée ailleurs"


class BackendError(CoachingError):
    status_code = 500


class ConfigurationError(CoachingError):
    status_code = 500
    public_message = "Service mal configuré"


class ProviderError(CoachingError):
    """Failure reported by an external provider (payment, email)."""

    status_code = 502
    public_message = "Le service externe a échoué, veuillez réessayer plus tard"

    def __init__(
        self,
        message: str,
        *,
        provider: str,
        status_code: Optional[int] = None,
        response_data: Optional[dict[str, Any]] = None,
    ):
        self.provider = provider
        self.provider_status = status_code
        self.response_data = response_data or {}
        super().__init__(message, code=f"{provider}_error")
