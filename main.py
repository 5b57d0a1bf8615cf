import logging
import os

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from edutrack import models
from edutrack.ai.config import validate_ai_config
from edutrack.core.config import get_settings
from edutrack.core.logging import configure_logging
from edutrack.database import engine
from edutrack.routers import ai, analytics, auth, materials, quizzes

settings = get_settings()
configure_logging(settings.log_level, settings.log_format)

logger = logging.getLogger("edutrack")

app = FastAPI(
    title="EduTrack - Learning Platform"
)


# Exception Handler for unexpected 500s
@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"message": "Internal Server Error", "detail": str(exc)},
    )


# Create DB tables
@app.on_event("startup")
def create_tables():
    models.Base.metadata.create_all(bind=engine)
    status = validate_ai_config(settings.ai)
    if not settings.ai.available_providers():
        logger.warning("No AI provider configured; AI features will be unavailable")
    elif status["missing"]:
        logger.info("AI providers without API keys: %s", ", ".join(status["missing"]))


# Version Check Route
@app.get("/version")
def get_version():
    return {"version": "1.0.0"}


# Mount Uploads directory - Writable (UPLOAD_DIR, or /tmp for Vercel)
os.makedirs(settings.upload_dir, exist_ok=True)
app.mount(settings.upload_url_prefix, StaticFiles(directory=settings.upload_dir), name="uploads")

# Include Routers
app.include_router(auth.router)
app.include_router(materials.router, prefix="/api")
app.include_router(quizzes.router, prefix="/api")
app.include_router(ai.router, prefix="/api")
app.include_router(analytics.router, prefix="/api")

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
