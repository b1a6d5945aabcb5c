from .coordinator import RefreshCoordinator, RefreshState
from .exceptions import ApiError, CredentialRejectedError, ReauthenticationRequired, RenewalFailure
from .session import ApiSession, Attempt

__all__ = [
    "ApiError",
    "ApiSession",
    "Attempt",
    "CredentialRejectedError",
    "ReauthenticationRequired",
    "RefreshCoordinator",
    "RefreshState",
    "RenewalFailure",
]
