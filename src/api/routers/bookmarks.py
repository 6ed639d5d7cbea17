"""Bookmark endpoints used by the page script."""
from fastapi import APIRouter, Depends

from api.dependencies import get_current_user, require_controller
from schemas.bookmark import BookmarkCreate, BookmarkRecord, IntentResponse
from services.gateway.types import AuthUser
from services.session_controller import SessionController

router = APIRouter(prefix="/bookmarks", tags=["bookmarks"])


@router.get("/", response_model=list[BookmarkRecord])
async def list_bookmarks(
    current_user: AuthUser = Depends(get_current_user),  # noqa: ARG001
    controller: SessionController = Depends(require_controller),
) -> list[BookmarkRecord]:
    """The current collection, newest first."""
    return controller.context.bookmarks


@router.post("/", response_model=IntentResponse)
async def create_bookmark(
    data: BookmarkCreate,
    current_user: AuthUser = Depends(get_current_user),  # noqa: ARG001
    controller: SessionController = Depends(require_controller),
) -> IntentResponse:
    """Add a bookmark. Empty title or URL is ignored."""
    accepted = await controller.add_bookmark(data.title, data.url)
    return IntentResponse(accepted=accepted)


@router.delete("/{bookmark_id}", response_model=IntentResponse)
async def delete_bookmark(
    bookmark_id: int,
    current_user: AuthUser = Depends(get_current_user),  # noqa: ARG001
    controller: SessionController = Depends(require_controller),
) -> IntentResponse:
    """Delete one of the current user's bookmarks."""
    accepted = await controller.delete_bookmark(bookmark_id)
    return IntentResponse(accepted=accepted)
