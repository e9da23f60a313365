from __future__ import annotations
from typing import AsyncIterator

from fastapi import HTTPException

from .cache import CacheService
from .gemini_client import GeminiClient
from .services.content_flow import FlowServices


def _new_client() -> GeminiClient:
	try:
		return GeminiClient()
	except ValueError as e:
		raise HTTPException(status_code=503, detail=str(e))


def get_cache() -> CacheService:
	return CacheService()


async def get_client() -> AsyncIterator[GeminiClient]:
	client = _new_client()
	try:
		yield client
	finally:
		await client.aclose()


def get_flow_services() -> FlowServices:
	# Outlives the request; the job closes it when the run ends
	return FlowServices.from_client(_new_client())
