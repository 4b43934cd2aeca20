from cra_assistant.gateway.auth import CredentialError, generate_token, split_credential
from cra_assistant.gateway.client import GatewayClient
from cra_assistant.gateway.rate_limiter import SlidingWindowRateLimiter
from cra_assistant.gateway.repair import extract_json_payload, parse_json_response, repair_json
from cra_assistant.gateway.transport import GLMTransport

__all__ = [
    "CredentialError",
    "GLMTransport",
    "GatewayClient",
    "SlidingWindowRateLimiter",
    "extract_json_payload",
    "generate_token",
    "parse_json_response",
    "repair_json",
    "split_credential",
]
