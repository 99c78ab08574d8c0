from typing import Any, Dict, Optional


class HubAgentError(Exception):
    """Base error for the agent runtime"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class Forbidden(HubAgentError):
    """Caller is not authorized for the target calendar"""


class RequestValidationError(HubAgentError):
    """Malformed request, tool arguments or message sequence"""


class AgentTimeoutError(HubAgentError):
    """Model invocation exceeded the turn time bound"""


class UpstreamError(HubAgentError):
    """Model or retrieval backend failure"""


class GuardrailFailure(HubAgentError):
    """The guardrail validator itself failed"""
