"""
Zoom webhook feature package.

Keeps every layer of webhook intake co-located: envelope normalization,
session reconciliation, presence/hop tracking, forwarding, the store
contract and the API router.
"""

from .api.router import router as zoom_webhook_router  # noqa: F401
from .dependencies import build_webhook_service  # noqa: F401
from .services.webhook_service import WebhookService  # noqa: F401
