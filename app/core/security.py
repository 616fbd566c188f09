import hashlib
import hmac

SIGNATURE_HEADER = "x-vapi-signature"


def sign_payload(payload: bytes, secret: str) -> str:
    return hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()


def verify_signature(payload: bytes, signature: str, secret: str) -> bool:
    """Check an HMAC-SHA256 webhook signature; the header may carry a ``sha256=`` prefix."""
    if not signature:
        return False
    expected = sign_payload(payload, secret)
    return hmac.compare_digest(expected, signature.removeprefix("sha256="))
