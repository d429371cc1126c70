"""Identity provider webhook verification and payload mapping.

Webhooks are signed with HMAC-SHA256 over "{id}.{timestamp}.{body}" using the
base64 secret that follows the "whsec_" prefix. The signature header carries
one or more space-separated "v1,<base64 digest>" entries; any match accepts
the payload. Timestamps older or newer than five minutes are rejected to
block replays.
"""

import base64
import hashlib
import hmac
import json
import time
from typing import Any, Mapping, Optional

from overflow.exceptions import InvalidPayloadError, InvalidSignatureError

SIGNATURE_TOLERANCE_SECONDS = 5 * 60
SECRET_PREFIX = "whsec_"


def _signing_key(secret: str) -> bytes:
    return base64.b64decode(secret.removeprefix(SECRET_PREFIX))


def sign_payload(secret: str, msg_id: str, timestamp: int, body: bytes) -> str:
    """Compute the "v1,<digest>" signature entry for a payload."""
    signed = f"{msg_id}.{timestamp}.".encode() + body
    digest = hmac.new(_signing_key(secret), signed, hashlib.sha256).digest()
    return "v1," + base64.b64encode(digest).decode()


def verify_webhook(
    secret: str,
    headers: Mapping[str, str],
    body: bytes,
    now: Optional[float] = None,
) -> dict[str, Any]:
    """Verify a webhook delivery and return its decoded JSON event.

    Raises:
        InvalidSignatureError: missing headers, stale timestamp, or no
            matching signature.
        InvalidPayloadError: signed body is not a JSON object.
    """
    if not secret:
        raise InvalidSignatureError("Webhook signing secret not configured")

    msg_id = headers.get("svix-id")
    timestamp = headers.get("svix-timestamp")
    signatures = headers.get("svix-signature")
    if not (msg_id and timestamp and signatures):
        raise InvalidSignatureError("Missing signature headers")

    try:
        sent_at = int(timestamp)
    except ValueError:
        raise InvalidSignatureError("Invalid signature timestamp")

    current = time.time() if now is None else now
    if abs(current - sent_at) > SIGNATURE_TOLERANCE_SECONDS:
        raise InvalidSignatureError("Signature timestamp outside tolerance")

    expected = sign_payload(secret, msg_id, sent_at, body)
    if not any(hmac.compare_digest(candidate, expected) for candidate in signatures.split()):
        raise InvalidSignatureError("No matching signature")

    try:
        event = json.loads(body)
    except ValueError as exc:
        raise InvalidPayloadError("Webhook body is not JSON") from exc
    if not isinstance(event, dict):
        raise InvalidPayloadError("Webhook body is not a JSON object")
    return event


def user_fields_from_event(data: Mapping[str, Any]) -> dict[str, Any]:
    """Map an identity provider user object to our synced user fields."""
    emails = data.get("email_addresses") or []
    email = emails[0].get("email_address") if emails else None
    name = " ".join(
        part for part in (data.get("first_name"), data.get("last_name")) if part
    )
    username = data.get("username") or (email.split("@")[0] if email else data["id"])
    return {
        "name": name or username,
        "username": username,
        "email": email,
        "picture": data.get("image_url"),
    }
