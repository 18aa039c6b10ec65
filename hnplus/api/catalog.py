"""API endpoints for pedigree catalog generation."""

import asyncio
import logging
from dataclasses import asdict
from typing import Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, Field

from hnplus.catalog import CatalogGenerator, RunStateStore
from hnplus.config import settings
from hnplus.errors import (
    CatalogAlreadyRunningError,
    CooldownAborted,
    HorseMismatchError,
    ScraperError,
    UnsupportedPlatformError,
)
from hnplus.models.database import async_session
from hnplus.scrapers import HarnessNationClient, open_response_cache

logger = logging.getLogger(__name__)

router = APIRouter()

_generator: Optional[CatalogGenerator] = None
_generator_lock = asyncio.Lock()


async def get_generator() -> CatalogGenerator:
    """Process-wide generator, so every request shares one run lock and cache."""
    global _generator
    if _generator is not None:
        return _generator
    async with _generator_lock:
        if _generator is None:
            cache = await open_response_cache(async_session, settings.cache_ttl)
            _generator = CatalogGenerator(HarnessNationClient(cache=cache), RunStateStore(async_session))
    return _generator


async def close_generator() -> None:
    global _generator
    if _generator is not None:
        await _generator.client.close()
        _generator = None


class CatalogRequest(BaseModel):
    """Horses to include, as ids or [id, hip number] pairs."""

    ids: list[Union[int, tuple[int, Union[int, str, None]]]] = Field(min_length=1)
    hip_numbers: bool = False
    full_pedigree: bool = False


@router.post("")
async def generate_catalog(request: CatalogRequest, generator: CatalogGenerator = Depends(get_generator)):
    """Generate a pedigree catalog PDF."""
    try:
        document = await generator.generate_catalog(request.ids, request.hip_numbers, request.full_pedigree)
    except CatalogAlreadyRunningError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except HorseMismatchError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except UnsupportedPlatformError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except CooldownAborted as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ScraperError as e:
        logger.error(f"Catalog generation failed: {e}")
        raise HTTPException(status_code=502, detail=str(e))

    return Response(
        content=document.content,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'attachment; filename="{document.filename}"',
            "X-Catalog-Pages": str(document.pages),
        },
    )


@router.get("/status")
async def catalog_status(pages: int = 1, generator: CatalogGenerator = Depends(get_generator)):
    """Whether a catalog is being generated, and how long one of ``pages`` pages should take."""
    telemetry = await generator.store.load_telemetry()
    return {
        "running": generator.running or await generator.store.is_running(),
        "telemetry": asdict(telemetry),
        "estimated_seconds": telemetry.estimate(pages),
    }


@router.post("/cache/prune")
async def prune_cache(generator: CatalogGenerator = Depends(get_generator)):
    """Remove expired responses from the cache."""
    removed = await generator.client.prune_cache()
    return {"removed": removed}


@router.delete("/cache")
async def clear_cache(generator: CatalogGenerator = Depends(get_generator)):
    """Empty the response cache."""
    await generator.client.clear_cache()
    return {"cleared": True}


@router.post("/abort")
async def abort_catalog(generator: CatalogGenerator = Depends(get_generator)):
    """Stop a running catalog at its next throttle cooldown."""
    generator.client.abort()
    return {"running": generator.running}
