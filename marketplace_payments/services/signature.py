import hashlib
import hmac
import logging
from typing import Optional, Union

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-tsara-signature"


def compute_signature(raw_body: Union[bytes, str], secret: str) -> str:
    """Hex HMAC-SHA256 of the raw body, the format Tsara sends in x-tsara-signature."""
    if isinstance(raw_body, str):
        raw_body = raw_body.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()


def verify_signature(raw_body: Union[bytes, str], signature_header: Optional[str], secret: Optional[str]) -> bool:
    """
    Verify a Tsara webhook signature.

    The digest has to be computed over the exact bytes received; re-serialized
    JSON is not guaranteed to match what the provider signed, so this must run
    before the body is parsed.

    Never raises. Every failure is logged with its reason and returned as False.
    """
    try:
        if secret is None or not secret.strip():
            logger.error("Webhook secret is not configured, set TSARA_WEBHOOK_SECRET to verify webhooks")
            return False
        if signature_header is None or not signature_header.strip():
            logger.warning("Webhook rejected: missing signature header")
            return False

        expected = compute_signature(raw_body, secret).encode("ascii")
        received = signature_header.strip().lower().encode("utf-8")
        if len(expected) != len(received):
            logger.warning(
                f"Webhook rejected: signature length mismatch (expected {len(expected)}, got {len(received)})")
            return False
        if not hmac.compare_digest(expected, received):
            logger.warning("Webhook rejected: signature mismatch")
            return False
        return True
    except Exception as e:
        logger.error(f"Webhook signature verification failed: {e}", exc_info=True)
        return False
