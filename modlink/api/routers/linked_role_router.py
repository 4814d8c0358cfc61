"""Linked-role consent flow: Discord first, then Nexus Mods"""

import logging
from urllib.parse import urlencode

from fastapi import APIRouter, Cookie, Depends
from fastapi.responses import PlainTextResponse, RedirectResponse, Response

from modlink.api.dependencies import get_context
from modlink.core.config import Settings
from modlink.core.context import AppContext
from modlink.core.exceptions import MissingPendingLink, ModLinkError, StateMismatch
from modlink.services import ERROR_COOKIE, STATE_COOKIE

logger = logging.getLogger(__name__)

router = APIRouter(tags=["linked-role"])


# ============================================
# Helpers
# ============================================


def set_signed_cookie(
    response: Response, settings: Settings, key: str, value: str, max_age: int
) -> None:
    response.set_cookie(
        key=key,
        value=value,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        max_age=max_age,
    )


def error_redirect(context: AppContext, detail: str) -> RedirectResponse:
    """Send the user to /oauth-error with *detail* in a signed cookie."""
    settings = context.settings
    response = RedirectResponse(url="/oauth-error", status_code=303)
    set_signed_cookie(
        response,
        settings,
        ERROR_COOKIE,
        context.cookies.sign(detail, "error", settings.error_cookie_max_age),
        settings.error_cookie_max_age,
    )
    return response


def _forbidden(e: ModLinkError) -> PlainTextResponse:
    return PlainTextResponse(e.detail, status_code=403)


# ============================================
# Endpoints
# ============================================


@router.get("/linked-role")
async def linked_role(context: AppContext = Depends(get_context)) -> RedirectResponse:
    """Start a link: set the correlation cookie and go to Discord consent."""
    flow = context.orchestrator.start_flow()
    settings = context.settings

    response = RedirectResponse(url=flow.authorize_url)
    set_signed_cookie(
        response,
        settings,
        STATE_COOKIE,
        context.cookies.sign(flow.state, "state", settings.state_cookie_max_age),
        settings.state_cookie_max_age,
    )
    return response


@router.get("/discord-oauth-callback")
async def discord_oauth_callback(
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    clientState: str | None = Cookie(None),  # noqa: N803
    context: AppContext = Depends(get_context),
) -> Response:
    """Handle the Discord callback and continue to Nexus Mods consent"""
    if error:
        logger.warning(f"Discord OAuth error: {error}")
        return error_redirect(context, f"Discord authorisation was not granted ({error})")
    if not code:
        logger.warning("No OAuth code received from Discord")
        return error_redirect(context, "Discord did not return an authorisation code")

    cookie_state = context.cookies.unsign(clientState, "state")
    try:
        nexus_url = await context.orchestrator.handle_discord_callback(code, state, cookie_state)
    except StateMismatch as e:
        return _forbidden(e)
    except ModLinkError as e:
        logger.error(f"Discord leg failed: {type(e).__name__}: {e.detail}")
        return error_redirect(context, e.detail)
    except Exception as e:
        logger.exception(f"Unexpected error in Discord callback: {e}")
        return error_redirect(context, "Something went wrong while talking to Discord")

    return RedirectResponse(url=nexus_url)


@router.get("/nexus-mods-callback")
async def nexus_mods_callback(
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    clientState: str | None = Cookie(None),  # noqa: N803
    context: AppContext = Depends(get_context),
) -> Response:
    """Handle the Nexus Mods callback and complete the link"""
    if error:
        logger.warning(f"Nexus Mods OAuth error: {error}")
        return error_redirect(context, f"Nexus Mods authorisation was not granted ({error})")
    if not code:
        logger.warning("No OAuth code received from Nexus Mods")
        return error_redirect(context, "Nexus Mods did not return an authorisation code")

    cookie_state = context.cookies.unsign(clientState, "state")
    try:
        result = await context.orchestrator.handle_nexus_callback(code, state, cookie_state)
    except (StateMismatch, MissingPendingLink) as e:
        return _forbidden(e)
    except ModLinkError as e:
        logger.error(f"Nexus Mods leg failed: {type(e).__name__}: {e.detail}")
        return error_redirect(context, e.detail)
    except Exception as e:
        logger.exception(f"Unexpected error in Nexus Mods callback: {e}")
        return error_redirect(context, "Something went wrong while linking your accounts")

    response = RedirectResponse(
        url="/success?"
        + urlencode(
            {
                "discord": result.discord_name,
                "d_id": result.discord_id,
                "nexus": result.nexus_name,
                "n_id": result.nexus_id,
            }
        ),
        status_code=303,
    )
    response.delete_cookie(STATE_COOKIE)
    return response


@router.get("/success", response_class=PlainTextResponse)
async def success(
    discord: str = "",
    d_id: str = "",
    nexus: str = "",
    n_id: str = "",
) -> str:
    """Minimal confirmation after a completed link"""
    return (
        f"Linked Discord account {discord} ({d_id}) "
        f"to Nexus Mods account {nexus} ({n_id}). You can close this window."
    )


@router.get("/oauth-error")
async def oauth_error(
    ErrorDetail: str | None = Cookie(None),  # noqa: N803
    context: AppContext = Depends(get_context),
) -> PlainTextResponse:
    """Show what went wrong during the consent flow"""
    detail = context.cookies.unsign(ErrorDetail, "error") or "Unknown error"
    response = PlainTextResponse(f"Linking failed: {detail}", status_code=400)
    response.delete_cookie(ERROR_COOKIE)
    return response
