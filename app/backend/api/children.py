from fastapi import APIRouter, Depends, HTTPException, status, Response, Request, Query
from typing import List, Optional
from uuid import UUID

from ..models.redis_models import SessionUser
from ..services.children_service import ChildrenService
from ..services.exceptions import ConflictError, DataAccessError, NotFoundError
from .schemas.child import ChildCreateRequest, ChildUpdateRequest, ChildResponse, ChildListResponse
from .auth import get_current_user
from .dependencies import get_children_service
from .utilities.limiter import limiter

router = APIRouter(prefix="/children", tags=["Children"])


def _raise_http(e: Exception):
    if isinstance(e, NotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, ConflictError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))


@router.get("", response_model=ChildListResponse, summary="List registered kids, optionally filtered")
@limiter.limit("120/minute")
async def list_children(
    request: Request,
    search: Optional[str] = Query(None, description="Part of the kid's name, case-insensitive."),
    standard: Optional[int] = Query(None, ge=1, le=12),
    school: Optional[str] = Query(None),
    user: SessionUser = Depends(get_current_user),
    service: ChildrenService = Depends(get_children_service)
):
    try:
        return await service.search_children(search=search, standard=standard, school=school)
    except DataAccessError as e:
        _raise_http(e)


@router.get("/schools", response_model=List[str], summary="Distinct school names on the roster")
@limiter.limit("120/minute")
async def list_schools(request: Request, user: SessionUser = Depends(get_current_user), service: ChildrenService = Depends(get_children_service)):
    try:
        return await service.list_schools()
    except DataAccessError as e:
        _raise_http(e)


@router.post("", response_model=ChildResponse, status_code=status.HTTP_201_CREATED, summary="Register a new kid")
@limiter.limit("60/minute")
async def register_child(request: Request, create_request: ChildCreateRequest, user: SessionUser = Depends(get_current_user), service: ChildrenService = Depends(get_children_service)):
    try:
        return await service.register_child(create_request.model_dump())
    except (ConflictError, DataAccessError) as e:
        _raise_http(e)


@router.get("/{child_id}", response_model=ChildResponse, summary="Get one kid")
@limiter.limit("120/minute")
async def get_child(request: Request, child_id: UUID, user: SessionUser = Depends(get_current_user), service: ChildrenService = Depends(get_children_service)):
    try:
        return await service.get_child(child_id)
    except (NotFoundError, DataAccessError) as e:
        _raise_http(e)


@router.patch("/{child_id}", response_model=ChildResponse, summary="Edit a kid's details")
@limiter.limit("60/minute")
async def update_child(request: Request, child_id: UUID, update_request: ChildUpdateRequest, user: SessionUser = Depends(get_current_user), service: ChildrenService = Depends(get_children_service)):
    # Only address may be cleared; an explicit null anywhere else means "leave as is".
    fields = {
        key: value for key, value in update_request.model_dump(exclude_unset=True).items()
        if value is not None or key == "address"
    }
    try:
        return await service.update_child(child_id, fields)
    except (NotFoundError, DataAccessError) as e:
        _raise_http(e)


@router.delete("/{child_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a kid")
@limiter.limit("60/minute")
async def delete_child(request: Request, child_id: UUID, user: SessionUser = Depends(get_current_user), service: ChildrenService = Depends(get_children_service)):
    try:
        await service.delete_child(child_id)
    except (NotFoundError, DataAccessError) as e:
        _raise_http(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
