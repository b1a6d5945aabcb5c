from fastapi import Request

from credgate.core.config import Environment, settings


def parse_subject_id(subject_id: str | int) -> int | None:
    """
    Turn a "sub" claim into a user primary key.

    Anything that is not a positive integer, booleans included, yields None.
    """
    if isinstance(subject_id, bool):
        return None

    if not isinstance(subject_id, int):
        try:
            subject_id = int(str(subject_id).strip())
        except (ValueError, TypeError):
            return None

    return subject_id if subject_id > 0 else None


def get_client_ip(request: Request) -> str:
    """
    Identity used for rate limiting.

    Trusts the first X-Forwarded-For hop, then X-Real-IP, then the socket
    peer. Every local request shares the "localhost" identity.
    """
    if settings.current_environment == Environment.LOCAL:
        return "localhost"

    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    return request.client.host if request.client else "unknown"
