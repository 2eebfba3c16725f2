"""FastAPI application entry point"""

import os
import sys
import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from birthbuild.core.config import settings
from birthbuild.models.errors import ApplicationError
from birthbuild.api import build, design_system, publish, checkpoints

# Configure logging early with force=True to override any existing config
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    force=True,
    handlers=[
        logging.StreamHandler(sys.stdout)  # Explicitly use stdout handler
    ]
)

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title=settings.api_title,
    version=settings.api_version,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ApplicationError)
async def application_error_handler(request: Request, error: ApplicationError):
    """Render ApplicationError as JSON; internal detail is logged, never returned"""
    if error.detail:
        logger.error(f"[API] {request.method} {request.url.path} -> {error.code.value} ({error.error_id}): {error.detail}")
    else:
        logger.info(f"[API] {request.method} {request.url.path} -> {error.code.value}: {error.message}")
    return JSONResponse(status_code=error.http_status, content=error.model_dump())


@app.on_event("startup")
async def startup_event():
    """Log startup diagnostic information"""
    logger.info("=" * 60)
    logger.info("BIRTHBUILD PIPELINE STARTING")
    logger.info("=" * 60)
    logger.info(f"PID: {os.getpid()}")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Record store: {settings.record_store}")
    logger.info(f"Default provider: {settings.default_provider}")
    logger.info(f"Design system repair policy: {settings.design_system_repair_policy}")
    logger.info("=" * 60)


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown"""
    logger.info("Shutting down pipeline service...")
    from birthbuild.core.deploy_client import netlify_client
    await netlify_client.close()
    from birthbuild.core.model_client import model_client
    await model_client.close()
    logger.info("Pipeline service shutdown complete")


@app.get("/")
async def root():
    """Health check endpoint"""
    return {"status": "healthy", "version": settings.api_version}


@app.get("/health")
async def health():
    """Health check for monitoring"""
    return {"status": "healthy"}


# Register API routes
app.include_router(build.router, prefix="/api", tags=["build"])
app.include_router(design_system.router, prefix="/api", tags=["design-system"])
app.include_router(publish.router, prefix="/api", tags=["publish"])
app.include_router(checkpoints.router, prefix="/api", tags=["checkpoints"])
