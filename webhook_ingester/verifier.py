"""
HMAC-SHA256 webhook signature verification.

VeilMail signs each webhook body with the shared webhook secret and sends
the hex digest in the ``x-veilmail-signature`` header.
"""
import binascii
import hashlib
import hmac

SIGNATURE_HEADER = "x-veilmail-signature"


def _to_bytes(value: bytes | str) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else value


def sign_payload(payload: bytes | str, secret: str) -> str:
    """
    Compute the hex signature the sender attaches to a payload.

    Args:
        payload: Raw request body
        secret: Shared webhook secret

    Returns:
        Lowercase hex HMAC-SHA256 digest
    """
    return hmac.new(_to_bytes(secret), _to_bytes(payload), hashlib.sha256).hexdigest()


def verify_webhook_signature(payload: bytes | str, signature: str, secret: str) -> bool:
    """
    Verify a webhook signature in constant time.

    Args:
        payload: Raw request body, exactly as received
        signature: Hex value of the signature header
        secret: Shared webhook secret

    Returns:
        True if the signature matches, False otherwise (never raises)
    """
    if not payload or not signature or not secret:
        return False

    try:
        supplied = binascii.unhexlify(signature)
    except (binascii.Error, ValueError):
        return False

    expected = hmac.new(_to_bytes(secret), _to_bytes(payload), hashlib.sha256).digest()
    if len(supplied) != len(expected):
        return False

    return hmac.compare_digest(supplied, expected)
