"""
Care Consent - FastAPI Application
Exposes consent checks, grant/revoke flows and review summaries
"""

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional
import logging
import structlog

from pydantic import BaseModel, ValidationError as PydanticValidationError

from .config import ConsentConfig
from .constants import SERVICE_NAME, SERVICE_VERSION
from .consent.manager import ConsentManager
from .exceptions import InvalidEnumValueError, ValidationError

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()

# Global settings
settings = ConsentConfig()
logging.basicConfig(level=settings.log_level.upper())

# Initialize services
consent_manager: Optional[ConsentManager] = None


class GlobalSharingRequest(BaseModel):
    enabled: bool


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    global consent_manager

    logger.info("Starting Care Consent service", version=SERVICE_VERSION)

    try:
        # Initialize services only if not already provided (for testing/injection)
        if consent_manager is None:
            consent_manager = ConsentManager(config=settings)
        logger.info("Consent services initialized")

    except Exception as e:
        logger.error("Failed to initialize consent services", error=str(e))

    yield

    logger.info("Shutting down Care Consent service")

# Create FastAPI app
app = FastAPI(
    title="Care Consent",
    description="Consent & access control engine for personal care data",
    version=SERVICE_VERSION,
    debug=settings.debug_mode,
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _require_manager() -> ConsentManager:
    if not consent_manager:
        raise HTTPException(status_code=503, detail="Consent manager not available")
    return consent_manager


async def _run(operation: str, user_id: str, call):
    """Await a manager call, mapping input errors to 400 and the rest to 500"""
    try:
        return await call
    except InvalidEnumValueError as e:
        raise HTTPException(
            status_code=400,
            detail={"error": f"invalid_{e.field}", "value": e.value},
        )
    except (ValidationError, PydanticValidationError) as e:
        logger.warning("Invalid consent payload", operation=operation, user_id=user_id, error=str(e))
        raise HTTPException(status_code=400, detail={"error": "invalid_payload"})
    except Exception as e:
        logger.error("Consent operation failed", operation=operation, user_id=user_id, error=str(e))
        raise HTTPException(status_code=500, detail="Consent operation failed")


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "components": {
            "consent_manager": consent_manager is not None,
        },
    }


@app.get("/consent/{user_id}")
async def get_consent(user_id: str):
    """Consent summaries, global sharing state and required-consent status"""
    manager = _require_manager()
    return await _run("get_consent", user_id, manager.get_consent(user_id))


@app.post("/consent/{user_id}/grant")
async def grant_consent(user_id: str, payload: Dict[str, Any]):
    manager = _require_manager()
    result = await _run("grant", user_id, manager.grant_consent(user_id, payload))
    logger.info("Consent grant processed", user_id=user_id, success=result["success"])
    return result


@app.post("/consent/{user_id}/revoke")
async def revoke_consent(user_id: str, payload: Dict[str, Any]):
    manager = _require_manager()
    result = await _run("revoke", user_id, manager.revoke_consent(user_id, payload))
    logger.info("Consent revoke processed", user_id=user_id, success=result["success"])
    return result


@app.post("/consent/{user_id}/scope")
async def update_consent_scope(user_id: str, payload: Dict[str, Any]):
    manager = _require_manager()
    return await _run("update_scope", user_id, manager.update_scope(user_id, payload))


@app.post("/consent/{user_id}/global-sharing")
async def set_global_sharing(user_id: str, request: GlobalSharingRequest):
    manager = _require_manager()
    return await _run("global_sharing", user_id,
                      manager.set_global_sharing(user_id, request.enabled))


@app.post("/consent/{user_id}/reset")
async def reset_consents(user_id: str):
    """Revoke every active consent, including required ones"""
    manager = _require_manager()
    return await _run("reset", user_id, manager.reset(user_id))


@app.post("/consent/{user_id}/review")
async def mark_reviewed(user_id: str):
    manager = _require_manager()
    return await _run("review", user_id, manager.mark_reviewed(user_id))


@app.post("/consent/{user_id}/requests")
async def process_consent_request(user_id: str, payload: Dict[str, Any]):
    """Apply a user's decision on a consent request"""
    manager = _require_manager()
    return await _run("process_request", user_id, manager.process_request(user_id, payload))


@app.get("/consent/{user_id}/pending")
async def pending_required_consents(user_id: str):
    manager = _require_manager()
    pending = await _run("pending", user_id, manager.get_pending_required(user_id))
    return {"user_id": user_id, "pending": pending}


@app.post("/consent/{user_id}/check")
async def check_consent(user_id: str, payload: Dict[str, Any]):
    """Answer only whether access is allowed"""
    manager = _require_manager()
    allowed = await _run("check", user_id, manager.check_consent(user_id, payload))
    return {"allowed": allowed}


@app.get("/consent/{user_id}/history")
async def consent_history(user_id: str, category: Optional[str] = None,
                          grantee: Optional[str] = None):
    manager = _require_manager()
    records = await _run("history", user_id, manager.get_history(user_id, category, grantee))
    return {"user_id": user_id, "records": records}


@app.get("/consent/{user_id}/export")
async def export_preferences(user_id: str):
    manager = _require_manager()
    exported = await _run("export", user_id, manager.export(user_id))
    return Response(content=exported, media_type="application/json")


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Care Consent",
        "version": SERVICE_VERSION,
        "status": "operational",
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
