"""Channel and merchant-platform webhook endpoints.

Providers get channel-specific answers: Twilio expects TwiML (or a plain
"OK" for status callbacks), Meta expects a 200 for every authenticated
delivery so it does not disable the subscription. Authentication failures
are always 401 and nothing is processed.
"""

import logging

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from src.application.services.webhooks import WebhookDispatcher
from src.domain.exceptions import AuthenticationError, ValidationError
from src.domain.model.enums import Channel
from src.infrastructure.adapters.primary.web.dependencies import (
    get_settings_from_app,
    get_webhook_dispatcher,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

EMPTY_TWIML = '<?xml version="1.0" encoding="UTF-8"?>\n<Response>\n</Response>'
FALLBACK_TWIML = (
    '<?xml version="1.0" encoding="UTF-8"?>\n<Response>\n'
    "<Message>We received your message and will respond shortly.</Message>\n"
    "</Response>"
)


def _client(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _twiml(body: str, status_code: int = status.HTTP_200_OK) -> Response:
    return Response(content=body, status_code=status_code, media_type="text/xml")


@router.post("/twilio")
async def twilio_webhook(
    request: Request,
    dispatcher: WebhookDispatcher = Depends(get_webhook_dispatcher),
) -> Response:
    """Inbound SMS and delivery status callbacks from Twilio."""
    raw_body = await request.body()
    settings = get_settings_from_app(request)
    # Twilio signs the public URL it posted to, which differs behind a proxy
    url = settings.twilio_webhook_url or str(request.url)

    try:
        dispatcher.authenticate(
            Channel.SMS, raw_body, request.headers, url=url, client=_client(request)
        )
    except AuthenticationError:
        return PlainTextResponse("Unauthorized", status_code=status.HTTP_401_UNAUTHORIZED)

    try:
        decoded = dispatcher.decode(Channel.SMS, raw_body)
    except ValidationError as e:
        logger.warning(f"[Webhooks] Malformed Twilio webhook: {e.message}")
        return PlainTextResponse(e.message, status_code=status.HTTP_400_BAD_REQUEST)

    result = await dispatcher.route(decoded)

    if decoded.statuses and not decoded.messages:
        if not result.ok:
            return PlainTextResponse("Error", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
        return PlainTextResponse("OK")

    if not result.ok:
        return _twiml(FALLBACK_TWIML, status.HTTP_500_INTERNAL_SERVER_ERROR)
    # Replies go out through the Messages API, never inline in TwiML
    return _twiml(EMPTY_TWIML)


@router.get("/whatsapp")
async def whatsapp_verify(
    mode: str | None = Query(default=None, alias="hub.mode"),
    token: str | None = Query(default=None, alias="hub.verify_token"),
    challenge: str | None = Query(default=None, alias="hub.challenge"),
    dispatcher: WebhookDispatcher = Depends(get_webhook_dispatcher),
) -> Response:
    """Meta subscription handshake."""
    try:
        return PlainTextResponse(dispatcher.verify_subscription(mode, token, challenge))
    except AuthenticationError:
        return PlainTextResponse("Forbidden", status_code=status.HTTP_403_FORBIDDEN)


@router.post("/whatsapp")
async def whatsapp_webhook(
    request: Request,
    dispatcher: WebhookDispatcher = Depends(get_webhook_dispatcher),
) -> Response:
    """WhatsApp messages and statuses."""
    raw_body = await request.body()
    try:
        dispatcher.authenticate(
            Channel.WHATSAPP, raw_body, request.headers, client=_client(request)
        )
    except AuthenticationError:
        return JSONResponse(
            {"success": False, "error": "Unauthorized"},
            status_code=status.HTTP_401_UNAUTHORIZED,
        )

    try:
        decoded = dispatcher.decode(Channel.WHATSAPP, raw_body)
    except ValidationError as e:
        logger.warning(f"[Webhooks] Malformed WhatsApp webhook: {e.message}")
        return JSONResponse({"success": False, "processed": 0})

    result = await dispatcher.route(decoded)
    return JSONResponse({"success": result.ok, "processed": result.processed})


@router.post("/platform/{topic:path}")
async def platform_webhook(
    topic: str,
    request: Request,
    dispatcher: WebhookDispatcher = Depends(get_webhook_dispatcher),
) -> JSONResponse:
    """Merchant-platform lifecycle and privacy compliance webhooks."""
    raw_body = await request.body()
    outcome = await dispatcher.handle_platform_event(
        topic, raw_body, request.headers, client=_client(request)
    )
    return JSONResponse({"success": True, **outcome})
