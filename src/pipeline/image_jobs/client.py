"""
Signed client for the asynchronous image renderer.

A job is submitted once, then its status endpoint is polled at a fixed
interval until it reports images or the wall-clock budget runs out. A single
status call never gets more time than the budget has left. Every HTTP call is
signed with a fresh timestamp and nonce.
"""

from typing import Any, Awaitable, Callable, Dict, List, Optional
import asyncio
import json
import logging
import time

import httpx

from src.models.services.storage import StorageUploader
from src.utils.image_converter import is_data_uri, is_remote_url
from ..errors import ConfigurationError, JobTimeoutError, RequestTimeoutError, UpstreamError, ValidationError
from .signing import epoch_millis, generate_nonce, sign
from .types import ImageJob, ImageJobRequest, ImageJobSettings, JobMode, JobStatus, SignedRequestParams

logger = logging.getLogger(__name__)

# renderer's generateStatus value for a job that will never produce images
RENDERER_FAILED_STATUS = 6


def parse_job(job_id: str, body: Dict[str, Any]) -> ImageJob:
    """Accepts both {images: [...]} and {data: {images: [...]}}; entries are urls or {imageUrl} objects."""
    data = body.get("data") if isinstance(body.get("data"), dict) else body
    images = []
    for entry in data.get("images") or []:
        url = (entry.get("imageUrl") or entry.get("url")) if isinstance(entry, dict) else entry
        if isinstance(url, str) and url:
            images.append(url)

    if images:
        status = JobStatus.SUCCEEDED
    elif data.get("generateStatus") == RENDERER_FAILED_STATUS:
        status = JobStatus.FAILED
    else:
        status = JobStatus.PENDING
    return ImageJob(id=job_id, status=status, images=images, raw=body)


class ImageJobClient:
    def __init__(
        self,
        settings: ImageJobSettings,
        http_client: Optional[httpx.AsyncClient] = None,
        uploader: Optional[StorageUploader] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        timestamp_factory: Callable[[], str] = epoch_millis,
        nonce_factory: Callable[[], str] = generate_nonce,
    ):
        self.settings = settings
        self.uploader = uploader
        self._client = http_client or httpx.AsyncClient(timeout=settings.request_timeout)
        self._owns_client = http_client is None
        self._clock = clock
        self._sleep = sleep
        self._timestamp = timestamp_factory
        self._nonce = nonce_factory

    def signed_params(self, path: str) -> SignedRequestParams:
        timestamp = self._timestamp()
        nonce = self._nonce()
        return SignedRequestParams(
            path=path,
            timestamp=timestamp,
            nonce=nonce,
            signature=sign(path, timestamp, nonce, self.settings.secret_key),
        )

    async def submit(self, request: ImageJobRequest) -> str:
        self._validate(request)
        generate_params = await self._build_generate_params(request)
        payload = {
            "templateUuid": self.settings.template_for(request.mode),
            "generateParams": generate_params,
        }
        logger.info(f"Submitting {request.mode.value} job, payload: {json.dumps(payload)[:500]}")

        body = await self._post(self.settings.path_for(request.mode), payload)
        data = body.get("data") if isinstance(body.get("data"), dict) else {}
        job_id = body.get("generateUuid") or data.get("generateUuid")
        if not job_id:
            raise UpstreamError("Renderer did not return a generateUuid", upstream_body=json.dumps(body))
        return job_id

    async def poll(self, job_id: str, timeout: Optional[float] = None) -> ImageJob:
        body = await self._post(self.settings.status_path, {"generateUuid": job_id}, timeout=timeout)
        return parse_job(job_id, body)

    async def run_job(self, request: ImageJobRequest, poll_interval: Optional[float] = None, timeout: Optional[float] = None) -> ImageJob:
        interval = self.settings.poll_interval if poll_interval is None else poll_interval
        budget = self.settings.timeout if timeout is None else timeout

        job_id = await self.submit(request)
        # budget starts once the renderer accepted the job
        started = self._clock()

        while True:
            remaining = budget - (self._clock() - started)
            if remaining <= 0:
                raise self._timed_out(job_id, request, started)

            try:
                # a slow status call must not carry the loop past the budget
                job = await asyncio.wait_for(
                    self.poll(job_id, timeout=min(self.settings.request_timeout, remaining)),
                    remaining,
                )
            except (asyncio.TimeoutError, RequestTimeoutError) as e:
                raise self._timed_out(job_id, request, started) from e

            if job.status is JobStatus.FAILED:
                raise UpstreamError(f"Image job {job_id} failed", upstream_body=json.dumps(job.raw))
            if job.images:
                break
            if self._clock() - started >= budget:
                raise self._timed_out(job_id, request, started)
            await self._sleep(interval)

        images = job.images
        if request.mode is JobMode.IMG2IMG and self.uploader is not None:
            # durable copies so the results can be chained into the next edit
            results = await asyncio.gather(*(self.uploader.persist(url) for url in images))
            images = [result.url for result in results]

        logger.info(f"Image job {job_id} ({request.mode.value}) completed in {self._clock() - started:.1f}s")
        return ImageJob(id=job_id, status=JobStatus.SUCCEEDED, images=images, raw=job.raw)

    async def generate_and_wait(self, request: ImageJobRequest, poll_interval: Optional[float] = None, timeout: Optional[float] = None) -> List[str]:
        job = await self.run_job(request, poll_interval=poll_interval, timeout=timeout)
        return job.images

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _validate(self, request: ImageJobRequest) -> None:
        if not request.prompt or not request.prompt.strip():
            raise ValidationError("prompt required")
        if request.image_count < 1:
            raise ValidationError("image_count must be at least 1")
        if request.mode is JobMode.IMG2IMG:
            if not request.source_image:
                raise ValidationError("sourceImage required for img2img")
            if not (is_data_uri(request.source_image) or is_remote_url(request.source_image)):
                raise ValidationError("sourceImage must be a URL or a data URI")

    async def _build_generate_params(self, request: ImageJobRequest) -> Dict[str, Any]:
        if request.mode is JobMode.TEXT2IMG:
            params: Dict[str, Any] = {
                "model": "pro",
                "prompt": request.prompt,
                "aspectRatio": request.aspect_ratio,
                "imgCount": request.image_count,
                "guidance_scale": self.settings.guidance_scale,
            }
        else:
            params = {
                "model": "max",
                "prompt": request.prompt,
                "image_list": [await self._hosted_source(request.source_image)],
            }

        if request.parent_job_id:
            params["parent_generate_uuid"] = request.parent_job_id
        return params

    async def _hosted_source(self, source: str) -> str:
        if is_data_uri(source):
            if self.uploader is None:
                raise ConfigurationError("img2img with a data URI needs durable storage")
            return await self.uploader.upload(source)
        if self.uploader is not None:
            return (await self.uploader.persist(source)).url
        return source

    def _timed_out(self, job_id: str, request: ImageJobRequest, started: float) -> JobTimeoutError:
        elapsed = self._clock() - started
        logger.error(f"Image job {job_id} ({request.mode.value}) timed out after {elapsed:.1f}s")
        return JobTimeoutError(job_id, elapsed)

    async def _post(self, path: str, payload: Dict[str, Any], timeout: Optional[float] = None) -> Dict[str, Any]:
        params = self.signed_params(path)
        url = f"{self.settings.host.rstrip('/')}{path}"
        try:
            response = await self._client.post(
                url,
                params=params.as_query(self.settings.access_key),
                json=payload,
                timeout=self.settings.request_timeout if timeout is None else timeout,
            )
        except httpx.TimeoutException as e:
            logger.error(f"Request to {path} timed out: {e}")
            raise RequestTimeoutError(path, e) from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"Request to {path} failed: {e}") from e

        logger.debug(f"{path} -> {response.status_code} {response.text[:500]}")
        if not response.is_success:
            raise UpstreamError(f"Renderer returned {response.status_code} for {path}", response.status_code, response.text)

        try:
            body = response.json()
        except ValueError as e:
            raise UpstreamError(f"Renderer returned a non-JSON body for {path}", response.status_code, response.text) from e
        if not isinstance(body, dict):
            raise UpstreamError(f"Renderer returned a non-object body for {path}", response.status_code, response.text)
        return body
