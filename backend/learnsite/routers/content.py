from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Dict

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from ..cache import CacheService
from ..deps import get_cache, get_flow_services
from ..levels import CONTENT_TYPES, DEFAULT_LEVEL, LEVELS
from ..schemas import FlowSnapshot, PageContent
from ..services.content_flow import ContentFlow, FlowServices

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/content", tags=["content"])


class JobRequest(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	prompt: str
	level: str = DEFAULT_LEVEL
	content_type: str = Field(default="concise", alias="contentType")


class JobResponse(BaseModel):
	job_id: str


# In-memory job registry: job_id -> running or finished flow
_jobs: Dict[str, ContentFlow] = {}
_tasks: Dict[str, "asyncio.Task[None]"] = {}


def _validate_level(level: str) -> str:
	if level not in LEVELS:
		raise HTTPException(status_code=400, detail=f"invalid level, expected one of {', '.join(LEVELS)}")
	return level


def _validate_content_type(content_type: str) -> str:
	if content_type not in CONTENT_TYPES:
		raise HTTPException(status_code=400, detail=f"invalid contentType, expected one of {', '.join(CONTENT_TYPES)}")
	return content_type


def _get_job(job_id: str) -> ContentFlow:
	flow = _jobs.get(job_id)
	if flow is None:
		raise HTTPException(status_code=404, detail="job not found")
	return flow


async def _run(job_id: str, flow: ContentFlow, services: FlowServices) -> None:
	try:
		snap = await flow.start()
		logger.info("Job %s finished in state %s", job_id, snap.state.value)
	finally:
		await services.aclose()
		_tasks.pop(job_id, None)


@router.post("/jobs", response_model=JobResponse)
async def start_job(
	req: JobRequest,
	services: FlowServices = Depends(get_flow_services),
	cache: CacheService = Depends(get_cache),
):
	prompt = req.prompt.strip()
	try:
		if not prompt:
			raise HTTPException(status_code=400, detail="prompt must not be empty")
		level = _validate_level(req.level)
		content_type = _validate_content_type(req.content_type)
	except HTTPException:
		await services.aclose()
		raise
	flow = ContentFlow(prompt, level, content_type, services=services, cache=cache)
	job_id = uuid.uuid4().hex
	_jobs[job_id] = flow
	_tasks[job_id] = asyncio.create_task(_run(job_id, flow, services))
	return JobResponse(job_id=job_id)


@router.get("/jobs/{job_id}", response_model=FlowSnapshot)
def get_job(job_id: str):
	return _get_job(job_id).snapshot()


@router.get("/jobs/{job_id}/pages/{page}", response_model=PageContent)
def get_page(job_id: str, page: int):
	flow = _get_job(job_id)
	found = flow.pages.get(page)
	if found is None:
		raise HTTPException(status_code=404, detail="page not ready or out of range")
	return found
