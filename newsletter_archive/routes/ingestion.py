"""
Ingestion routes: manual operator triggers for the pipeline.

Manual runs execute inline so failures reach the caller: a broken listing
or unreachable archive is a 502, an overlapping run is a 409.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request

from ..auth import verify_api_key
from ..config import get_pipeline, state
from ..exceptions import (
    ChallengeDetected,
    EmptyListingError,
    IngestionInProgressError,
    NetworkError,
)
from ..pipeline import IngestionPipeline
from ..rate_limit import ingest_rate_limit, limiter
from ..scheduler import INGEST_JOB, RETRY_DETAILS_JOB
from ..schemas import IngestionResponse, RetryDetailsResponse

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/ingest",
    tags=["ingestion"],
    dependencies=[Depends(verify_api_key)]
)


@router.post("")
@limiter.limit(ingest_rate_limit)
async def run_ingestion(
    request: Request,
    pipeline: Annotated[IngestionPipeline, Depends(get_pipeline)],
) -> IngestionResponse:
    """Scrape the archive now and return what was imported."""
    try:
        result = await pipeline.run_ingestion()
    except IngestionInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except EmptyListingError as e:
        logger.error(f"Manual ingestion found no issues: {e}")
        raise HTTPException(status_code=502, detail=str(e))
    except (NetworkError, ChallengeDetected) as e:
        logger.error(f"Manual ingestion could not reach the archive: {e}")
        raise HTTPException(status_code=502, detail=f"Archive unavailable: {e}")
    return IngestionResponse.from_result(result)


@router.post("/retry-details")
@limiter.limit(ingest_rate_limit)
async def retry_missing_details(
    request: Request,
    pipeline: Annotated[IngestionPipeline, Depends(get_pipeline)],
) -> RetryDetailsResponse:
    """Re-scrape detail pages for issues that are still missing them."""
    try:
        result = await pipeline.retry_missing_details()
    except IngestionInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return RetryDetailsResponse.from_result(result)


@router.post("/enqueue", status_code=202)
async def enqueue_ingestion() -> dict:
    """Queue an ingestion run and details sweep on the background worker."""
    if not state.job_queue:
        raise HTTPException(status_code=503, detail="Job queue not running")
    ingest = await state.job_queue.enqueue(INGEST_JOB)
    retry = await state.job_queue.enqueue(RETRY_DETAILS_JOB)
    return {"success": True, "job_ids": [ingest.id, retry.id]}
