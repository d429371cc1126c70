"""Identity provider webhook.

POST /api/webhook -- user.created / user.updated / user.deleted sync

The route is ignored by IdentityMiddleware; authenticity comes from the
payload signature alone.
"""

import structlog
from fastapi import APIRouter, Request
from pydantic import ValidationError

from overflow.config import settings
from overflow.dependencies import Cache, DbSession
from overflow.exceptions import InvalidPayloadError, NotFoundError
from overflow.schemas.webhook import WebhookEvent
from overflow.services import users as user_service
from overflow.services.page_cache import profile_route
from overflow.services.webhooks import user_fields_from_event, verify_webhook

log = structlog.get_logger()

router = APIRouter(tags=["webhook"])

USER_EVENTS = ("user.created", "user.updated", "user.deleted")


@router.post("/api/webhook")
async def identity_webhook(request: Request, db: DbSession, cache: Cache) -> dict:
    body = await request.body()
    payload = verify_webhook(settings.webhook_signing_secret, request.headers, body)
    try:
        event = WebhookEvent.model_validate(payload)
    except ValidationError as exc:
        raise InvalidPayloadError("Webhook body is not an event envelope") from exc

    if event.type not in USER_EVENTS:
        log.info("webhook_ignored", event_type=event.type)
        return {"message": "Ignored"}

    clerk_id = event.data.get("id")
    if not isinstance(clerk_id, str) or not clerk_id:
        raise InvalidPayloadError(f"{event.type} event without a user id")
    log.info("webhook_received", event_type=event.type, clerk_id=clerk_id)

    if event.type == "user.created":
        user = await user_service.upsert_user(
            db, clerk_id, cache=cache, **user_fields_from_event(event.data)
        )
        return {"message": "OK", "user_id": str(user.id)}

    if event.type == "user.updated":
        user = await user_service.update_user(
            db,
            clerk_id,
            user_fields_from_event(event.data),
            path=profile_route(clerk_id),
            cache=cache,
        )
        return {"message": "OK", "user_id": str(user.id)}

    try:
        await user_service.delete_user(db, clerk_id, cache=cache)
    except NotFoundError:
        # Deliveries are retried; a second delete finds nothing to remove
        log.info("webhook_user_already_deleted", clerk_id=clerk_id)
    return {"message": "OK"}
