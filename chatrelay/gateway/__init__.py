"""Gateway to the generative-AI provider.

Wraps one model call per request and exposes its output as an ordered
stream of text fragments.

Responsibilities:
    - Provider client initialization from environment configuration
    - Inline file parts placed ahead of the prompt text
    - Sampling defaults (nucleus mass 0.95, top-k 50)
    - Failing before the first fragment when the provider rejects a request
"""

from chatrelay.gateway.client import (
    GatewayError,
    GatewayService,
    GatewayTimeoutError,
    GenerationRequest,
    get_gateway_service,
)
from chatrelay.gateway.config import GatewayConfig, get_gateway_config

__all__ = [
    "GatewayConfig",
    "GatewayError",
    "GatewayService",
    "GatewayTimeoutError",
    "GenerationRequest",
    "get_gateway_config",
    "get_gateway_service",
]
