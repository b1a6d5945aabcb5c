import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import Any, Callable

from jose import jwt
from jose.exceptions import JWTError
from pwdlib import PasswordHash

from credgate.core.config import Settings, settings
from credgate.core.constants import CredentialKind
from credgate.core.types import JWTPayloadDict

password_hash = PasswordHash.recommended()

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


class VerificationStatus(StrEnum):
    VALID = "valid"
    MALFORMED = "malformed"
    SIGNATURE_MISMATCH = "signature_mismatch"
    EXPIRED = "expired"


@dataclass(frozen=True, slots=True)
class IssuedCredential:
    """A freshly signed credential and the claims it was signed over."""

    token: str
    kind: CredentialKind
    subject_id: str
    issued_at: datetime
    expires_at: datetime

    def __str__(self) -> str:
        return self.token


@dataclass(frozen=True, slots=True)
class Verification:
    """
    Outcome of TokenVerifier.verify. subject_id is only set when status is VALID.
    """

    status: VerificationStatus
    subject_id: str | None = None
    expires_at: int | None = None

    @property
    def is_valid(self) -> bool:
        return self.status is VerificationStatus.VALID

    @classmethod
    def valid(cls, subject_id: str, expires_at: int) -> "Verification":
        return cls(VerificationStatus.VALID, subject_id=subject_id, expires_at=expires_at)

    @classmethod
    def failed(cls, status: VerificationStatus) -> "Verification":
        return cls(status)


@dataclass(frozen=True)
class SigningKeys:
    """
    Independent secrets per credential kind, so holding one kind of
    credential never lets anyone forge the other.
    """

    access_secret: str
    renewal_secret: str
    algorithm: str = "HS256"

    def __post_init__(self):
        if not self.access_secret or not self.renewal_secret:
            raise ValueError("Signing configuration is missing a secret")

        if self.access_secret == self.renewal_secret:
            raise ValueError("Access and renewal secrets must differ")

    def secret_for(self, kind: CredentialKind) -> str:
        if kind is CredentialKind.ACCESS:
            return self.access_secret

        return self.renewal_secret

    @classmethod
    def from_settings(cls, config: Settings) -> "SigningKeys":
        return cls(
            access_secret=config.access_token_secret.get_secret_value(),
            renewal_secret=config.renewal_token_secret.get_secret_value(),
            algorithm=config.jwt_algorithm,
        )


class TokenIssuer:
    """
    Creates signed access and renewal credentials.

    Both kinds carry {sub, iat, exp} plus the kind and a random jti;
    exp = iat + the configured lifetime for that kind.
    """

    def __init__(
        self,
        keys: SigningKeys,
        access_ttl: timedelta,
        renewal_ttl: timedelta,
        clock: Clock = utc_now,
    ):
        self.keys = keys
        self.ttls = {
            CredentialKind.ACCESS: access_ttl,
            CredentialKind.RENEWAL: renewal_ttl,
        }
        self._clock = clock

    @classmethod
    def from_settings(cls, config: Settings, clock: Clock = utc_now) -> "TokenIssuer":
        return cls(
            keys=SigningKeys.from_settings(config),
            access_ttl=timedelta(seconds=config.access_token_expire_seconds),
            renewal_ttl=timedelta(seconds=config.renewal_token_expire_seconds),
            clock=clock,
        )

    def issue(self, kind: CredentialKind, subject_id: str) -> IssuedCredential:
        """
        Sign a credential of the given kind.

        Args:
            kind: Access or renewal.
            subject_id: Opaque subject identifier, must be non-empty.

        Returns:
            IssuedCredential with the encoded token and its timestamps.

        Raises:
            ValueError: If subject_id is empty.
        """
        subject_id = str(subject_id) if subject_id is not None else ""
        if not subject_id.strip():
            raise ValueError("Cannot issue a credential without a subject")

        issued_at = self._clock().replace(microsecond=0)
        expires_at = issued_at + self.ttls[kind]

        payload = JWTPayloadDict(
            sub=subject_id,
            iat=int(issued_at.timestamp()),
            exp=int(expires_at.timestamp()),
            type=kind.value,
            jti=uuid.uuid4().hex,
        )
        token = jwt.encode(
            dict(payload), self.keys.secret_for(kind), algorithm=self.keys.algorithm
        )

        return IssuedCredential(
            token=token,
            kind=kind,
            subject_id=subject_id,
            issued_at=issued_at,
            expires_at=expires_at,
        )

    def issue_access(self, subject_id: str) -> IssuedCredential:
        return self.issue(CredentialKind.ACCESS, subject_id)

    def issue_renewal(self, subject_id: str) -> IssuedCredential:
        return self.issue(CredentialKind.RENEWAL, subject_id)

    def issue_pair(self, subject_id: str) -> tuple[IssuedCredential, IssuedCredential]:
        """Mint the access/renewal pair handed out at signup, login and refresh."""
        return self.issue_access(subject_id), self.issue_renewal(subject_id)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class TokenVerifier:
    """
    Validates a presented credential. Checks run in a fixed order:
    structure, then signature for the expected kind, then expiry.
    Any failure is final; there is no partially trusted result.
    """

    def __init__(self, keys: SigningKeys, clock: Clock = utc_now):
        self.keys = keys
        self._clock = clock

    @classmethod
    def from_settings(cls, config: Settings, clock: Clock = utc_now) -> "TokenVerifier":
        return cls(keys=SigningKeys.from_settings(config), clock=clock)

    def verify(self, token: str | None, expected_kind: CredentialKind) -> Verification:
        """
        Args:
            token: The encoded credential as presented by the client.
            expected_kind: Which kind the caller requires.

        Returns:
            Verification with status VALID and the subject id, or one of
            MALFORMED, SIGNATURE_MISMATCH, EXPIRED.
        """
        claims = self._read_claims(token)
        if claims is None:
            return Verification.failed(VerificationStatus.MALFORMED)

        try:
            jwt.decode(
                token,
                self.keys.secret_for(expected_kind),
                algorithms=[self.keys.algorithm],
                options={
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_nbf": False,
                    "verify_aud": False,
                },
            )
        except JWTError:
            return Verification.failed(VerificationStatus.SIGNATURE_MISMATCH)

        if claims["type"] != expected_kind.value:
            return Verification.failed(VerificationStatus.SIGNATURE_MISMATCH)

        if self._clock().timestamp() >= claims["exp"]:
            return Verification.failed(VerificationStatus.EXPIRED)

        return Verification.valid(subject_id=claims["sub"], expires_at=claims["exp"])

    @staticmethod
    def _read_claims(token: str | None) -> dict[str, Any] | None:
        """Unverified claims, or None when the token is not a well-formed JWT."""
        if not isinstance(token, str) or token.count(".") != 2:
            return None

        try:
            jwt.get_unverified_header(token)
            claims = jwt.get_unverified_claims(token)
        except JWTError:
            return None

        subject = claims.get("sub")
        if not isinstance(subject, str) or not subject:
            return None

        if not _is_int(claims.get("iat")) or not _is_int(claims.get("exp")):
            return None

        if not isinstance(claims.get("type"), str):
            return None

        return claims


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify password against hashed password
    Args:
        plain_password: Plain password
        hashed_password: Hashed password

    Returns:
        Whether password matches hash
    """
    return password_hash.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """
    Hash password
    Args:
        password: Plain password

    Returns:
        Hashed password
    """
    return password_hash.hash(password)


token_issuer = TokenIssuer.from_settings(settings)
token_verifier = TokenVerifier.from_settings(settings)
