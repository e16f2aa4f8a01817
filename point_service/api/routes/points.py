"""REST endpoints for managing points."""

from contextlib import aclosing
from typing import Annotated

import anyio
from fastapi import APIRouter, Depends, HTTPException, Path, Query, Request, Response
from fastapi.responses import StreamingResponse
import structlog

from point_service.api.headers import (
    create_entity_creation_alert,
    create_entity_deletion_alert,
    create_entity_update_alert,
)
from point_service.db_context import DatabaseManager, transactional
from point_service.entities import (
    ID_MAX,
    ID_MIN,
    MAX_PAGE,
    MAX_PAGE_SIZE,
    Pageable,
    Point,
    PointPatch,
    PointPayload,
    PointSchema,
    SortOrder,
)
from point_service.errors import BadRequestAlertError, EntityNotFoundError
from point_service.repository import PointRepository

logger = structlog.get_logger(__name__)

API_PREFIX = "/api"
ENTITY_NAME = "point"
NDJSON = "application/x-ndjson"
MERGE_PATCH_JSON = "application/merge-patch+json"

router = APIRouter(prefix=API_PREFIX)

PointId = Annotated[int, Path(ge=ID_MIN, le=ID_MAX, description="Point id (BIGINT)")]


# -------------------------------------------------------------------------
# Dependencies
# -------------------------------------------------------------------------


def get_point_repository() -> PointRepository:
    return PointRepository()


def get_pageable(
    page: int = Query(0, ge=0, le=MAX_PAGE, description="Zero-based page index"),
    size: int | None = Query(
        None, ge=1, le=MAX_PAGE_SIZE, description="Page size, all rows when omitted"
    ),
    sort: list[str] = Query(default=[], description="Sort key as property[,asc|desc]"),
) -> Pageable:
    """Parse Spring-style `sort=id,desc` parameters into a Pageable.

    Blank sort values such as `sort=` or `sort=,desc` are ignored.
    """
    columns = PointSchema.fields()
    sort_keys = []
    for value in sort:
        prop, _, direction = value.partition(",")
        prop = prop.strip()
        if not prop:
            continue
        direction = direction.strip().upper() or SortOrder.ASC.value
        if prop not in columns or direction not in SortOrder.__members__:
            raise BadRequestAlertError(f"Invalid sort '{value}'", ENTITY_NAME, "sortinvalid")
        sort_keys.append((prop, SortOrder(direction)))
    return Pageable(page=page, size=size, sort=sort_keys)


async def require_merge_patch(request: Request):
    content_type = request.headers.get("content-type", "")
    if content_type.split(";")[0].strip().lower() != MERGE_PATCH_JSON:
        raise HTTPException(
            status_code=415, detail=f"Content type '{content_type}' not supported"
        )


def _alerts(request: Request, alert, point_id) -> dict[str, str]:
    return alert(request.app.state.settings.application_name, ENTITY_NAME, str(point_id))


def _check_ids(path_id: int, body_id: int | None):
    if body_id is None:
        raise BadRequestAlertError("Invalid id", ENTITY_NAME, "idnull")
    if body_id != path_id:
        raise BadRequestAlertError("Invalid ID", ENTITY_NAME, "idinvalid")


# -------------------------------------------------------------------------
# Endpoints
# -------------------------------------------------------------------------


@router.post("/points", response_model=Point, status_code=201)
@transactional()
async def create_point(
    point: PointPayload,
    request: Request,
    response: Response,
    repo: PointRepository = Depends(get_point_repository),
):
    """Create a new point. The payload must not carry an id."""
    logger.debug("rest_request_create_point", point=point.model_dump())
    if point.id is not None:
        raise BadRequestAlertError(
            "A new point cannot already have an ID", ENTITY_NAME, "idexists"
        )

    result = await repo.save(point)

    response.headers["Location"] = f"{API_PREFIX}/points/{result.id}"
    for name, value in _alerts(request, create_entity_creation_alert, result.id).items():
        response.headers[name] = value
    return result


@router.put("/points/{id}", response_model=Point)
@transactional()
async def update_point(
    id: PointId,
    point: PointPayload,
    request: Request,
    response: Response,
    repo: PointRepository = Depends(get_point_repository),
):
    """Replace an existing point. Body id must match the path id."""
    logger.debug("rest_request_update_point", id=id, point=point.model_dump())
    _check_ids(id, point.id)

    if not await repo.exists_by_id(id):
        raise BadRequestAlertError("Entity not found", ENTITY_NAME, "idnotfound")

    result = await repo.save(point)

    for name, value in _alerts(request, create_entity_update_alert, result.id).items():
        response.headers[name] = value
    return result


@router.patch(
    "/points/{id}",
    response_model=Point,
    dependencies=[Depends(require_merge_patch)],
)
@transactional()
async def partial_update_point(
    id: PointId,
    patch: PointPatch,
    request: Request,
    response: Response,
    repo: PointRepository = Depends(get_point_repository),
):
    """Merge the non-null fields of the body into an existing point."""
    logger.debug("rest_request_partial_update_point", id=id, patch=patch.model_dump())
    _check_ids(id, patch.id)

    if not await repo.exists_by_id(id):
        raise BadRequestAlertError("Entity not found", ENTITY_NAME, "idnotfound")

    existing = await repo.find_by_id(id)
    if existing is None:
        raise EntityNotFoundError(f"Point {id} not found")

    result = await repo.save(patch.apply_to(existing))

    for name, value in _alerts(request, create_entity_update_alert, result.id).items():
        response.headers[name] = value
    return result


class ClosingStreamingResponse(StreamingResponse):
    """StreamingResponse that closes its body generator when streaming stops.

    Starlette abandons the body iterator when the client disconnects. Closing
    it rolls back the stream transaction and releases its connection.
    """

    async def stream_response(self, send) -> None:
        try:
            await super().stream_response(send)
        finally:
            # The surrounding scope may already be cancelled
            with anyio.CancelScope(shield=True):
                await self.body_iterator.aclose()


async def _stream_points(repo: PointRepository, pageable: Pageable):
    async with DatabaseManager.transaction(), aclosing(repo.find_all(pageable)) as points:
        async for point in points:
            yield point.model_dump_json() + "\n"


@router.get("/points", response_model=list[Point])
async def get_all_points(
    request: Request,
    pageable: Pageable = Depends(get_pageable),
    repo: PointRepository = Depends(get_point_repository),
):
    """List points as a JSON array, or as NDJSON when the client accepts it."""
    if NDJSON in request.headers.get("accept", ""):
        logger.debug("rest_request_get_all_points_as_stream")
        return ClosingStreamingResponse(_stream_points(repo, pageable), media_type=NDJSON)

    logger.debug("rest_request_get_all_points")
    async with DatabaseManager.transaction():
        return await repo.find_all_as_list(pageable)


@router.get("/points/{id}", response_model=Point)
@transactional()
async def get_point(id: PointId, repo: PointRepository = Depends(get_point_repository)):
    logger.debug("rest_request_get_point", id=id)
    point = await repo.find_by_id(id)
    if point is None:
        raise EntityNotFoundError(f"Point {id} not found")
    return point


@router.delete("/points/{id}", status_code=204)
@transactional()
async def delete_point(
    id: PointId,
    request: Request,
    repo: PointRepository = Depends(get_point_repository),
):
    """Delete a point. Deleting a missing point still answers 204."""
    logger.debug("rest_request_delete_point", id=id)
    await repo.delete_by_id(id)
    return Response(
        status_code=204, headers=_alerts(request, create_entity_deletion_alert, id)
    )
