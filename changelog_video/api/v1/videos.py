"""Video download proxy. The provider API key never reaches the client."""

import logging

from fastapi import APIRouter, HTTPException
from fastapi.responses import Response

from changelog_video.api.v1.jobs import get_job_service
from changelog_video.errors import NotFoundError, SecurityViolation
from changelog_video.storage.result_gateway import ResultFetchError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/videos/{job_id}", summary="Download video")
async def download_video(job_id: str):
    """Stream the finished video for a completed job."""
    service = get_job_service()
    try:
        artifact = await service.get_result(job_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except SecurityViolation as exc:
        raise HTTPException(status_code=403, detail=str(exc))
    except ResultFetchError as exc:
        raise HTTPException(status_code=500, detail=str(exc))

    return Response(
        content=artifact.content,
        media_type=artifact.media_type,
        headers={"Content-Disposition": f'attachment; filename="{artifact.filename}"'},
    )
