"""FastAPI endpoints for the chat relay.

Stateless request handlers; concurrent requests share nothing but the
provider credential.

Endpoints:
    - GET /health: Service health status
    - POST /api/chat: Server-Sent Events relay of one model call
"""

from chatrelay.api.app import app, create_app

__all__ = ["app", "create_app"]
