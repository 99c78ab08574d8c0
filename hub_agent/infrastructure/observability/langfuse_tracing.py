from typing import Any, Dict, List, Optional
from langchain_core.callbacks import BaseCallbackHandler
import structlog

from hub_agent.infrastructure.config.settings import Settings

logger = structlog.get_logger(__name__)


class LangfuseTracing:
    """Builds Langfuse callback handlers for LangChain runs"""

    def __init__(self, settings: Settings):
        self.settings = settings
        self._client = None

        if settings.tracing_enabled:
            from langfuse import Langfuse

            self._client = Langfuse(
                public_key=settings.langfuse_public_key,
                secret_key=settings.langfuse_secret_key,
                host=settings.langfuse_host
            )
            logger.info("Langfuse tracing enabled", host=settings.langfuse_host)

    @property
    def enabled(self) -> bool:
        return self._client is not None

    def callbacks(self) -> List[BaseCallbackHandler]:
        """Callback handlers to attach to a run"""

        if not self.enabled:
            return []

        from langfuse.langchain import CallbackHandler

        return [CallbackHandler(public_key=self.settings.langfuse_public_key)]

    def trace_metadata(self, thread_id: str, user_id: Optional[str], tags: Optional[List[str]] = None) -> Dict[str, Any]:
        """Run metadata that groups a thread into one Langfuse session"""

        if not self.enabled:
            return {}

        return {
            "langfuse_session_id": thread_id,
            "langfuse_user_id": user_id,
            "langfuse_tags": tags or ["chat"],
        }

    def flush(self) -> None:
        """Flush pending trace events"""

        if self._client is not None:
            self._client.flush()
