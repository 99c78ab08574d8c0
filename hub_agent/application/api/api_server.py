from typing import Optional
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError as PayloadValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from datetime import datetime
import structlog

from hub_agent.application.api.route.agent import router as agent_router
from hub_agent.application.container import AgentContainer, build_container
from hub_agent.application.websocket.ws_server import connection_manager, router as stream_router
from hub_agent.domain.errors import (
    AgentTimeoutError, Forbidden, HubAgentError, RequestValidationError, UpstreamError
)
from hub_agent.infrastructure.observability.logging import metrics, setup_logging

logger = structlog.get_logger(__name__)

APOLOGY = "I'm sorry, I couldn't complete your request right now. Please try again in a moment."


def create_app(container: Optional[AgentContainer] = None) -> FastAPI:
    """Build the HTTP and WebSocket application"""

    if container is None:
        container = build_container()
        setup_logging(
            log_level=container.settings.log_level,
            log_format=container.settings.log_format,
            service_name=container.settings.service_name
        )

    app = FastAPI(title="Social Hub Agent Server")
    app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=container.settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(agent_router)
    app.include_router(stream_router)

    @app.exception_handler(Forbidden)
    async def forbidden_handler(request: Request, exc: Forbidden):
        return JSONResponse(status_code=403, content={"error": "Forbidden", "details": exc.message})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": exc.message})

    @app.exception_handler(PayloadValidationError)
    async def payload_validation_handler(request: Request, exc: PayloadValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid request", "details": str(exc.errors())}
        )

    @app.exception_handler(AgentTimeoutError)
    async def timeout_handler(request: Request, exc: AgentTimeoutError):
        return JSONResponse(status_code=504, content={"error": APOLOGY, "details": exc.message})

    @app.exception_handler(UpstreamError)
    async def upstream_handler(request: Request, exc: UpstreamError):
        return JSONResponse(status_code=502, content={"error": APOLOGY, "details": exc.message})

    @app.exception_handler(HubAgentError)
    async def agent_error_handler(request: Request, exc: HubAgentError):
        logger.error("Unhandled agent error", error=exc.message, error_type=type(exc).__name__)
        return JSONResponse(status_code=500, content={"error": APOLOGY, "details": exc.message})

    @app.on_event("shutdown")
    async def shutdown_event():
        """Flush traces on shutdown"""
        container.tracing.flush()
        logger.info("Agent server shutdown")

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "active_connections": len(connection_manager.active_connections),
            "metrics": metrics.get_metrics_summary(),
            "timestamp": datetime.utcnow().isoformat()
        }

    return app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
