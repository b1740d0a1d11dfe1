"""Worker control routes.

- GET  /api/v1/workers               - status of every worker
- POST /api/v1/workers/{name}/start  - start a worker (no-op if running)
- POST /api/v1/workers/{name}/stop   - stop a worker after its current iteration

Unknown worker names return 404; a worker whose dependencies are not
configured (e.g., missing API key) returns 503 on start.
"""

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from video_notifier.exceptions import ConfigurationError, UnknownWorkerError
from video_notifier.routes.deps import get_registry
from video_notifier.schemas.video_event import WorkerStatusResponse
from video_notifier.supervisor import WorkerRegistry

log = structlog.get_logger()
router = APIRouter(prefix="/api/v1/workers", tags=["workers"])


@router.get("")
async def list_workers(registry: WorkerRegistry = Depends(get_registry)) -> dict[str, str]:
    return registry.statuses()


@router.post("/{name}/start")
async def start_worker(
    name: str, registry: WorkerRegistry = Depends(get_registry)
) -> WorkerStatusResponse:
    try:
        worker_status = await registry.start(name)
    except UnknownWorkerError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ConfigurationError as e:
        log.error("worker_start_misconfigured", worker=name, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)
        ) from e

    log.info("worker_start_requested", worker=name)
    return WorkerStatusResponse(name=name, status=worker_status)


@router.post("/{name}/stop")
async def stop_worker(
    name: str, registry: WorkerRegistry = Depends(get_registry)
) -> WorkerStatusResponse:
    try:
        worker_status = await registry.stop(name)
    except UnknownWorkerError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e

    log.info("worker_stop_requested", worker=name, status=worker_status)
    return WorkerStatusResponse(name=name, status=worker_status)
