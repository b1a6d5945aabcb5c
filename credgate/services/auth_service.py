from dataclasses import dataclass

from loguru import logger
from sqlalchemy.exc import IntegrityError

from credgate.core.auth import (
    IssuedCredential,
    TokenIssuer,
    TokenVerifier,
    VerificationStatus,
    get_password_hash,
    token_issuer,
    token_verifier,
    verify_password,
)
from credgate.core.constants import CredentialKind
from credgate.core.exceptions.domain import (
    DuplicateEmailError,
    ExpiredCredentialError,
    InvalidLoginCredentialsError,
    MalformedCredentialError,
    MissingCredentialError,
    SignatureMismatchError,
    SubjectNotFoundError,
)
from credgate.models.user import User
from credgate.repos import SubjectStore
from credgate.schemas import UserCreate, UserLogin, UserSignup

# Pre-computed dummy hash for timing attack prevention
# Reference: https://cheatsheetseries.owasp.org/cheatsheets/Authentication_Cheat_Sheet.html
_DUMMY_HASH = get_password_hash("dummy_password_for_timing_attack_prevention")


@dataclass(frozen=True, slots=True)
class AuthResult:
    """A subject together with the credential pair just minted for it."""

    user: User
    access: IssuedCredential
    renewal: IssuedCredential


class AuthService:
    """
    Authentication service handling signup, login and credential rotation.
    Receives the subject store via constructor and never sees database sessions.

    Raises AuthError subclasses, which the app's exception handlers translate
    into exactly one HTTP status and envelope each.
    """

    def __init__(
        self,
        user_repo: SubjectStore,
        issuer: TokenIssuer = token_issuer,
        verifier: TokenVerifier = token_verifier,
    ):
        self.user_repo = user_repo
        self.issuer = issuer
        self.verifier = verifier

    def _issue_for(self, user: User) -> AuthResult:
        access, renewal = self.issuer.issue_pair(str(user.id))
        return AuthResult(user=user, access=access, renewal=renewal)

    async def register_user(self, signup_data: UserSignup) -> AuthResult:
        """
        Register a new user and issue both credentials.

        Args:
            signup_data: Name, email and password.

        Returns:
            AuthResult with the created user and its credential pair.

        Raises:
            DuplicateEmailError: If a user with the email already exists.
        """
        existing = await self.user_repo.find_by_email(signup_data.email)
        if existing:
            raise DuplicateEmailError()

        hashed_password = get_password_hash(signup_data.password.get_secret_value())

        try:
            user = await self.user_repo.create(
                UserCreate(
                    name=signup_data.name,
                    email=signup_data.email,
                    hashed_password=hashed_password,
                )
            )
        except IntegrityError as e:
            # Lost a race with a concurrent signup for the same email
            raise DuplicateEmailError(exception=e)

        logger.info(f"New user registered: {user.id}")
        return self._issue_for(user)

    async def authenticate_user(self, login_data: UserLogin) -> AuthResult:
        """
        Authenticate user by email and password and issue both credentials.

        A password hash comparison runs even when the email is unknown so
        both failure paths take the same time.

        Raises:
            InvalidLoginCredentialsError: Unknown email or wrong password.
        """
        user = await self.user_repo.find_by_email(login_data.email)

        hash_to_verify = user.hashed_password if user else _DUMMY_HASH
        password_valid = verify_password(login_data.password.get_secret_value(), hash_to_verify)

        if not user or not password_valid:
            raise InvalidLoginCredentialsError()

        logger.info(f"User logged in: {user.id}")
        return self._issue_for(user)

    async def refresh_tokens(self, renewal_token: str | None) -> AuthResult:
        """
        Rotate the credential pair using a renewal credential.

        The presented renewal credential is not revoked; it stays valid until
        its own expiry.

        Args:
            renewal_token: Value of the renewal cookie, if any.

        Returns:
            AuthResult with a fresh access and renewal credential.

        Raises:
            MissingCredentialError: No renewal credential was presented.
            MalformedCredentialError, SignatureMismatchError, ExpiredCredentialError:
                The renewal credential failed verification.
            SubjectNotFoundError: The subject no longer exists.
        """
        if not renewal_token:
            raise MissingCredentialError("No refresh token provided")

        verification = self.verifier.verify(renewal_token, CredentialKind.RENEWAL)

        match verification.status:
            case VerificationStatus.MALFORMED:
                raise MalformedCredentialError("Invalid or expired refresh token")
            case VerificationStatus.SIGNATURE_MISMATCH:
                raise SignatureMismatchError("Invalid or expired refresh token")
            case VerificationStatus.EXPIRED:
                raise ExpiredCredentialError("Invalid or expired refresh token")

        user = await self.user_repo.find_by_id(verification.subject_id)  # type: ignore[arg-type]
        if user is None:
            raise SubjectNotFoundError()

        logger.info(f"Token refreshed for user: {user.id}")
        return self._issue_for(user)
