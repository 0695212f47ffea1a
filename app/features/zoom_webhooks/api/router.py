"""
Zoom webhook endpoints.

POST / and POST /webhooks/zoom accept Zoom deliveries. The response goes
out as soon as the body is authenticated and normalized; persistence and
forwarding continue in background tasks.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from starlette.requests import ClientDisconnect

from app.features.zoom_webhooks.errors import AuthenticationFailure, MalformedPayload
from app.features.zoom_webhooks.services.webhook_service import WebhookService
from app.infrastructure.observability.logging import get_logger

router = APIRouter(tags=["zoom-webhooks"])
logger = get_logger(__name__)

ZOOM_SIGNATURE_HEADER = "x-zm-signature"
ZOOM_TIMESTAMP_HEADER = "x-zm-request-timestamp"
LIVENESS_TEXT = "Zoom webhook receiver is running"


def get_webhook_service(request: Request) -> WebhookService:
    """Resolve the service built during application startup."""
    service = getattr(request.app.state, "webhook_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Webhook service not ready"
        )
    return service


@router.get("/", response_class=PlainTextResponse)
async def liveness():
    return LIVENESS_TEXT


@router.post("/")
@router.post("/webhooks/zoom")
async def zoom_webhook(request: Request, service: WebhookService = Depends(get_webhook_service)):
    """
    Receive a Zoom webhook delivery.

    Returns:
        200 with {"status": "ok"} for accepted events, or the
        plainToken/encryptedToken pair for endpoint.url_validation

    Raises:
        400: Body malformed
        401: Missing headers, unknown secret or signature mismatch
    """
    try:
        raw_body = await request.body()
    except ClientDisconnect:
        logger.warning("Client disconnected before body was read")
        return Response(status_code=status.HTTP_400_BAD_REQUEST)

    try:
        outcome = service.handle(
            raw_body,
            request.headers.get(ZOOM_TIMESTAMP_HEADER),
            request.headers.get(ZOOM_SIGNATURE_HEADER),
        )
    except AuthenticationFailure:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    except MalformedPayload as e:
        logger.warning("Malformed webhook body", error=str(e))
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return JSONResponse(outcome.body, status_code=outcome.status_code)
