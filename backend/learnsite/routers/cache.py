from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from ..cache import CacheService
from ..deps import get_cache
from ..schemas import StorageInfo

router = APIRouter(prefix="/cache", tags=["cache"])


@router.get("/info", response_model=StorageInfo)
def cache_info(cache: CacheService = Depends(get_cache)):
	return cache.get_storage_info()


@router.delete("")
def clear_cache(prefix: Optional[str] = None, cache: CacheService = Depends(get_cache)):
	if prefix:
		return {"removed": cache.clear_by_prefix(prefix)}
	removed = len(cache.get_keys_by_prefix(""))
	if not cache.clear():
		raise HTTPException(status_code=500, detail="failed to clear cache")
	return {"removed": removed}
