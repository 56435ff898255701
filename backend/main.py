# backend/main.py
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from routes import interview, session_routes, vapi_routes
from config import get_settings
from services.session_manager import session_manager
from utils.logger import setup_logging, get_logger
from utils.redis_client import test_connection

setup_logging()
log = get_logger(__name__)
settings = get_settings()

VERSION = "1.0.0"

app = FastAPI(
    title="AI Mock Interview API",
    version=VERSION,
    description="Voice mock interviews (Vapi) with structured feedback (Gemini + Firestore)"
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(interview.router)
app.include_router(session_routes.router)
app.include_router(vapi_routes.router)


@app.on_event("startup")
async def startup_event():
    """Startup tasks"""
    log.info(f"🚀 Starting AI Mock Interview API v{VERSION}")

    redis_ok = await test_connection()
    if redis_ok:
        log.info("✅ Redis connected")
    else:
        log.warning("⚠️ Redis connection failed; rate limits disabled")

    services = []
    if settings.llm_api_key:
        services.append("✅ Gemini LLM")
    if settings.vapi_api_key:
        services.append("✅ Vapi voice")
    if settings.firebase_project_id:
        services.append("✅ Firestore")

    log.info(f"Services: {', '.join(services) if services else 'None'}")


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown"""
    log.info("🛑 Shutting down...")
    session_manager.cleanup_all()
    log.info("✅ Shutdown complete")


@app.get("/")
async def root():
    return {
        "message": f"AI Mock Interview API v{VERSION}",
        "status": "operational",
        "docs": "/docs"
    }


@app.get("/health")
async def health_check():
    """Health check"""
    return {
        "status": "healthy",
        "version": VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "active_sessions": len(session_manager.active_sessions),
        "services": {
            "gemini": bool(settings.llm_api_key),
            "vapi": bool(settings.vapi_api_key),
            "firebase": bool(settings.firebase_project_id),
        }
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
