"""
Job source admin endpoints: health overview, enable/disable toggle and manual re-run.
"""
import logging
from typing import Any, Dict

from fastapi import APIRouter, HTTPException, Depends

from app.source_health import summarize_source
from core.errors import ConfigError
from security.admin_auth import admin_required

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/admin/sources", tags=["sources"])


def _get_orchestrator():
    from orchestrator import get_orchestrator

    try:
        return get_orchestrator()
    except ConfigError as e:
        logger.error(f"[sources] Orchestrator unavailable: {e}")
        raise HTTPException(status_code=503, detail=str(e))


@router.get("/health")
def sources_health(admin: str = Depends(admin_required)) -> Dict[str, Any]:
    """Health overview of every configured source."""
    orchestrator = _get_orchestrator()
    try:
        sources = orchestrator.store.list_sources()
    except Exception as e:
        logger.error(f"[sources] Failed to list sources: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to list sources")

    return {
        "status": "ok",
        "data": [summarize_source(source) for source in sources],
    }


@router.post("/{source_id}/toggle")
def toggle_source(source_id: str, admin: str = Depends(admin_required)) -> Dict[str, Any]:
    """Enable or disable a source."""
    orchestrator = _get_orchestrator()
    try:
        source = orchestrator.store.toggle_source(source_id)
    except Exception as e:
        logger.error(f"[sources] Failed to toggle source {source_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to toggle source")

    if source is None:
        raise HTTPException(status_code=404, detail="Source not found")

    logger.info(f"[sources] {admin} set source {source.id} ({source.name}) is_enabled={source.is_enabled}")
    return {
        "status": "ok",
        "data": summarize_source(source),
    }


@router.post("/{source_id}/rerun")
async def rerun_source(source_id: str, admin: str = Depends(admin_required)) -> Dict[str, Any]:
    """Run one source now, through the same path as a scheduled run."""
    orchestrator = _get_orchestrator()
    try:
        source = orchestrator.store.get_source(source_id)
    except Exception as e:
        logger.error(f"[sources] Failed to load source {source_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to load source")

    if source is None:
        raise HTTPException(status_code=404, detail="Source not found")
    if not source.is_enabled:
        raise HTTPException(status_code=409, detail="Source is disabled")

    logger.info(f"[sources] {admin} triggered re-run of source {source.id} ({source.name})")
    try:
        result = await orchestrator.run_source(source.id)
    except LookupError:
        raise HTTPException(status_code=404, detail="Source not found")

    return {
        "status": "ok",
        "data": result,
    }
