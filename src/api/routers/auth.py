"""OAuth sign-in/out endpoints."""
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import RedirectResponse

from api.dependencies import ensure_client_key, get_client_key, get_controller, get_sessions
from services.client_sessions import ClientSessions
from services.session_controller import SessionController

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/sign-in")
async def sign_in(
    request: Request,
    sessions: ClientSessions = Depends(get_sessions),
) -> RedirectResponse:
    """Redirect to the OAuth provider; back to the page if that fails."""
    controller = await sessions.get(ensure_client_key(request))
    url = await controller.sign_in()
    return RedirectResponse(url or "/", status_code=303)


@router.get("/callback")
async def callback(
    code: str = Query(default=""),
    state: str = Query(default=""),
    controller: SessionController | None = Depends(get_controller),
) -> RedirectResponse:
    """
    Provider redirect target. Completes the code exchange.

    Only the browser that started the sign-in holds the matching state, so a
    callback arriving without its cookie signs nobody in.
    """
    if controller is not None and code and state:
        await controller.complete_sign_in(code, state)
    return RedirectResponse("/", status_code=303)


@router.post("/sign-out")
async def sign_out(
    request: Request,
    client_key: str | None = Depends(get_client_key),
    controller: SessionController | None = Depends(get_controller),
    sessions: ClientSessions = Depends(get_sessions),
) -> RedirectResponse:
    """Sign out, forget this browser's controller and return to the sign-in prompt."""
    if controller is not None and client_key is not None:
        await controller.sign_out()
        await sessions.discard(client_key)
    request.session.clear()
    return RedirectResponse("/", status_code=303)
