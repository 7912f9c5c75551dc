import os
import logging
from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from typing import Optional
from . import __version__
from .config import settings
from .exceptions import ConfigurationError, InvalidInputError, ModerationError
from .models import ModerateRequest, ModerationResult
from .moderate import Moderator, build_moderator

logger = logging.getLogger(__name__)

_moderator: Optional[Moderator] = None

@asynccontextmanager
async def lifespan(app: FastAPI):
    global _moderator
    yield
    # Close the provider HTTP client and any Redis connection on shutdown
    if _moderator is not None:
        await _moderator.aclose()
        _moderator = None

app = FastAPI(title=settings.app_name, lifespan=lifespan)

# Configure CORS for browser-based applications
# Customize CORS_ORIGINS in production to restrict to your domains
allowed_origins = settings.cors_origins.split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    expose_headers=["Content-Type"],
    max_age=3600,
)

def get_moderator() -> Moderator:
    """Get or create the process-wide moderator."""
    global _moderator
    if _moderator is None:
        _moderator = build_moderator(settings)
    return _moderator

@app.exception_handler(RequestValidationError)
async def invalid_request_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": "invalid_request", "details": jsonable_encoder(exc.errors())},
    )

@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    logger.error(f"Moderator misconfigured: {exc}")
    return JSONResponse(status_code=500, content={"error": "misconfigured", "message": str(exc)})

@app.exception_handler(ModerationError)
async def moderation_error_handler(request: Request, exc: ModerationError):
    # Never echo request text here
    logger.error(f"Moderation failed: {type(exc).__name__}")
    return JSONResponse(status_code=502, content={"error": "moderation_failed", "message": str(exc)})

@app.get("/live")
def live():
    return {"ok": True}

@app.get("/health")
def health_check():
    """Health check endpoint for monitoring and installation verification."""
    try:
        moderator = get_moderator()
        classifier = moderator.classifier
        return JSONResponse(content={
            "status": "healthy",
            "version": __version__,
            "model": getattr(classifier, "model", None),
            "cache_backend": settings.cache_backend,
            "timeout_ms": moderator.timeout_ms,
        })
    except ModerationError as e:
        return JSONResponse(
            status_code=503,
            content={
                "status": "unhealthy",
                "error": str(e)
            }
        )

@app.post("/moderate", response_model=ModerationResult)
async def moderate(req: ModerateRequest, moderator: Moderator = Depends(get_moderator)):
    if len(req.text.encode("utf-8")) > settings.max_payload_kb * 1024:
        raise HTTPException(413, "Payload too large")
    try:
        return await moderator.moderate(req.text, lang=req.lang)
    except InvalidInputError as e:
        raise HTTPException(400, str(e))

def main():
    import uvicorn
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    uvicorn.run(app, host=os.getenv("HOST", "0.0.0.0"), port=settings.port)

if __name__ == "__main__":
    main()
