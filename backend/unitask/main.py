"""
UniTask - multi-tenant task and reporting backend
Backend: FastAPI
"""

import os
import subprocess
import traceback
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from unitask.config import ALLOWED_ORIGINS, DEBUG
from unitask.logging_config import setup_logging, get_logger
from unitask.routers import admin, auth, migrations, tasks


def run_migrations():
    """Run Alembic migrations to ensure database is up to date."""
    logger = get_logger(__name__)
    logger.info("Running database migrations...")

    try:
        result = subprocess.run(
            ["alembic", "upgrade", "head"],
            capture_output=True,
            text=True,
            cwd=os.path.dirname(os.path.dirname(__file__))  # backend directory
        )
    except FileNotFoundError:
        logger.error("Alembic not found. Make sure alembic is installed.")
        raise

    if result.returncode != 0:
        logger.error(f"Migration failed: {result.stderr}")
        raise RuntimeError(f"Database migration failed: {result.stderr}")

    logger.info("Database migrations completed successfully")
    if result.stdout:
        logger.debug(f"Migration output: {result.stdout}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    setup_logging()
    logger = get_logger(__name__)

    logger.info("Application startup initiated")
    try:
        run_migrations()
    except Exception as e:
        logger.error(f"Database initialization failed: {e}", exc_info=True)
        raise

    logger.info("Application startup complete")
    yield
    logger.info("Application shutdown initiated")


app = FastAPI(
    title="UniTask",
    description="Multi-tenant task and reporting backend",
    version="13.0.0",
    lifespan=lifespan
)

# CORS middleware - allow frontend to access API with credentials
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(admin.router)
app.include_router(auth.router)
app.include_router(tasks.router)
app.include_router(migrations.router)


@app.get("/api/health")
def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Log unhandled errors; include the traceback in the response only in debug mode."""
    logger = get_logger(__name__)
    tb_str = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    logger.error(
        f"Unhandled exception on {request.method} {request.url.path}: {exc}\n{tb_str}",
        extra={"error_type": type(exc).__name__}
    )

    content = {
        "detail": "An internal server error occurred",
        "error_type": type(exc).__name__,
    }
    if DEBUG:
        content["error_message"] = str(exc)
        content["traceback"] = tb_str
    return JSONResponse(status_code=500, content=content)


if __name__ == "__main__":
    import uvicorn

    from unitask.config import PORT

    host = os.getenv("HOST", "0.0.0.0")
    uvicorn.run("unitask.main:app", host=host, port=PORT, reload=DEBUG)
