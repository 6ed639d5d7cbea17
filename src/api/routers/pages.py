"""The single HTML page."""
from pathlib import Path

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from api.dependencies import get_controller
from schemas.bookmark import is_web_url
from services.session_controller import SessionController

templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent.parent / "templates"))
# Stored rows predating URL validation may still hold script URLs
templates.env.filters["web_href"] = lambda url: url if is_web_url(url) else "#"

router = APIRouter(tags=["pages"])


@router.get("/", response_class=HTMLResponse)
async def index(
    request: Request,
    controller: SessionController | None = Depends(get_controller),
) -> HTMLResponse:
    """Sign-in prompt when anonymous, otherwise the bookmark list."""
    if controller is None:
        user, bookmarks = None, []
    else:
        user, bookmarks = controller.context.user, controller.context.bookmarks
    return templates.TemplateResponse(
        request,
        "index.html",
        {"user": user, "bookmarks": bookmarks},
    )
