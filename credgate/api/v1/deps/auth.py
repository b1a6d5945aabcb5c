from enum import StrEnum
from typing import Annotated

from fastapi import Depends, Request
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from credgate.core.auth import TokenVerifier, VerificationStatus, token_verifier
from credgate.core.constants import CredentialKind
from credgate.core.cookies import CredentialStore, credential_store
from credgate.core.db import get_session
from credgate.core.exceptions.domain import (
    AuthError,
    ExpiredCredentialError,
    MalformedCredentialError,
    MissingCredentialError,
    SignatureMismatchError,
    SubjectNotFoundError,
)
from credgate.models.user import User
from credgate.repos import SubjectStore, UserRepo
from credgate.services.auth_service import AuthService


class GateState(StrEnum):
    NO_CREDENTIAL = "no_credential"
    EXTRACTED = "extracted"
    VERIFIED = "verified"
    SUBJECT_RESOLVED = "subject_resolved"
    ATTACHED = "attached"
    REJECTED = "rejected"


_REJECTIONS: dict[VerificationStatus, type[AuthError]] = {
    VerificationStatus.MALFORMED: MalformedCredentialError,
    VerificationStatus.SIGNATURE_MISMATCH: SignatureMismatchError,
    VerificationStatus.EXPIRED: ExpiredCredentialError,
}


class AuthGate:
    """
    Per-request evaluation that turns an Authorization header into a subject.

    NO_CREDENTIAL -> EXTRACTED -> VERIFIED -> SUBJECT_RESOLVED -> ATTACHED,
    or REJECTED from any step. The gate never renews an expired credential;
    that is the client's job. No state survives between requests.
    """

    def __init__(
        self,
        verifier: TokenVerifier = token_verifier,
        store: CredentialStore = credential_store,
    ):
        self.verifier = verifier
        self.store = store

    async def evaluate(self, request: Request, user_repo: SubjectStore) -> User:
        """
        Args:
            request: Incoming request; on success the subject is attached
                as request.state.user.
            user_repo: Subject store used to resolve the credential's subject.

        Returns:
            The resolved subject.

        Raises:
            MissingCredentialError, MalformedCredentialError, SignatureMismatchError,
            ExpiredCredentialError, SubjectNotFoundError
        """
        state = GateState.NO_CREDENTIAL

        try:
            token = self.store.read_access_credential(request)
            if token is None:
                raise MissingCredentialError()
            state = GateState.EXTRACTED

            verification = self.verifier.verify(token, CredentialKind.ACCESS)
            if not verification.is_valid:
                raise _REJECTIONS[verification.status]()
            state = GateState.VERIFIED

            user = await user_repo.find_by_id(verification.subject_id)  # type: ignore[arg-type]
            if user is None:
                raise SubjectNotFoundError()
            state = GateState.SUBJECT_RESOLVED

            request.state.user = user
            state = GateState.ATTACHED
            return user

        except AuthError as e:
            logger.debug(f"AuthGate rejected request in state {state.value}: {e.kind.value}")
            state = GateState.REJECTED
            raise

        finally:
            request.state.auth_state = state


auth_gate = AuthGate()


async def get_user_repo(
    db: Annotated[AsyncSession, Depends(get_session)],
) -> SubjectStore:
    return UserRepo(db)


async def get_auth_service(
    user_repo: Annotated[SubjectStore, Depends(get_user_repo)],
) -> AuthService:
    return AuthService(user_repo)


async def get_current_user(
    request: Request,
    user_repo: Annotated[SubjectStore, Depends(get_user_repo)],
) -> User:
    """
    Get current authenticated user from the bearer access credential

    Args:
        request: Incoming request
        user_repo: Subject store

    Returns:
        Current authenticated user

    Raises:
        AuthError: If the credential is missing, invalid, expired, or its subject is gone
    """
    return await auth_gate.evaluate(request, user_repo)
