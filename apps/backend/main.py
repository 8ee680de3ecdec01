from fastapi import FastAPI, Request, HTTPException
from fastapi.responses import JSONResponse
from dotenv import load_dotenv
import os
import logging
import traceback

from app.config import Capabilities, get_env_presence
from app.sources import router as sources_router

load_dotenv()

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
logger = logging.getLogger(__name__)


def is_dev() -> bool:
    return os.getenv("JOBINGEST_ENV", "").lower() == "dev"


def create_app() -> FastAPI:
    api = FastAPI(title="Job Ingest API", version="0.1.0")

    @api.middleware("http")
    async def mask_errors(request: Request, call_next):
        """Unhandled errors become a generic 500; dev mode includes the traceback."""
        try:
            return await call_next(request)
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"[main] Unhandled error on {request.method} {request.url.path}: {e}")
            body = {"status": "error", "error": "Internal error while handling the request"}
            if is_dev():
                detail = traceback.format_exc()
                logger.error(detail)
                body.update({"error": str(e), "traceback": detail})
            return JSONResponse(status_code=500, content=body)

    api.include_router(sources_router)

    @api.get("/api/healthz")
    async def healthz():
        return Capabilities.get_status()

    @api.get("/admin/config/env")
    async def env_presence():
        # presence flags only, never values
        if not is_dev():
            raise HTTPException(status_code=404, detail="Not found")
        return get_env_presence()

    logger.info(f"[main] JOBINGEST_ENV={os.getenv('JOBINGEST_ENV', 'production').lower()}")
    return api


app = create_app()
