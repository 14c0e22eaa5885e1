"""
Asynchronous image-generation jobs: submission and bounded status polling.

Processing flow:
    1. Submit the prompt once and read back a job id.
    2. Fetch the job status on a fixed interval.
    3. Resolve on completion (first result URL) or failure; give up after
       ``max_attempts`` ticks.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Protocol

from createkit.errors import ProviderError, ProviderTimeout, ProviderUnavailable

logger = logging.getLogger(__name__)

IMAGE_SIZE = 1024
POLL_INTERVAL_SECONDS = 2.0
MAX_POLL_ATTEMPTS = 30


class JobStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class GenerationJob:
    job_id: str
    status: JobStatus = JobStatus.PENDING
    result_url: Optional[str] = None
    error: Optional[str] = None


class ImageJobClient(Protocol):
    def submit(self, prompt: str, *, width: int, height: int) -> dict:
        ...

    def get_job(self, job_id: str) -> dict:
        ...


def submit_image_job(client: ImageJobClient, prompt: str) -> GenerationJob:
    payload = client.submit(prompt, width=IMAGE_SIZE, height=IMAGE_SIZE)
    job_id = payload.get("id") or payload.get("job_id")
    if not job_id:
        logger.error("Image provider returned no job id: %s", payload)
        raise ProviderUnavailable("Failed to initiate image generation job.")
    logger.info("Submitted image job %s", job_id)
    return GenerationJob(job_id=str(job_id))


def apply_status(job: GenerationJob, payload: dict) -> GenerationJob:
    """Advance ``job`` from one status payload. Unknown shapes stay pending."""
    urls = (payload.get("result") or {}).get("urls") or []
    if payload.get("completed_at") and urls:
        job.status = JobStatus.COMPLETED
        job.result_url = urls[0]
    elif payload.get("status") == JobStatus.FAILED.value:
        job.status = JobStatus.FAILED
        job.error = payload.get("error") or "Unknown error"
    return job


def poll_job(
    client: ImageJobClient,
    job: GenerationJob,
    *,
    interval: float = POLL_INTERVAL_SECONDS,
    max_attempts: int = MAX_POLL_ATTEMPTS,
    sleep: Callable[[float], None] = time.sleep,
) -> str:
    """
    Poll until the job resolves and return its result URL.

    The first status check happens immediately; consecutive checks are
    ``interval`` seconds apart, so at most ``max_attempts - 1`` sleeps occur.
    """
    start_time = time.time()
    for attempt in range(1, max_attempts + 1):
        apply_status(job, client.get_job(job.job_id))
        if job.status == JobStatus.COMPLETED:
            logger.info(
                "Image job %s completed after %d checks (%.2fs)",
                job.job_id,
                attempt,
                time.time() - start_time,
            )
            return job.result_url
        if job.status == JobStatus.FAILED:
            logger.error("Image job %s failed: %s", job.job_id, job.error)
            raise ProviderError(f"Image generation failed: {job.error}")
        if attempt < max_attempts:
            sleep(interval)

    logger.error("Image job %s timed out after %d checks", job.job_id, max_attempts)
    raise ProviderTimeout("Image generation timed out.")
