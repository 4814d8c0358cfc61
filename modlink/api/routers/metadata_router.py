"""Role metadata endpoints"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, Field

from modlink.api.dependencies import get_context
from modlink.core.context import AppContext
from modlink.core.exceptions import ModLinkError, NotLinkedError, ProviderError
from modlink.shared.models import LinkedAccount

from .linked_role_router import error_redirect

logger = logging.getLogger(__name__)

router = APIRouter(tags=["metadata"])


class UpdateMetadataRequest(BaseModel):
    user_id: str = Field(alias="userId")


async def _require_account(context: AppContext, discord_id: str) -> LinkedAccount:
    account = await context.store.get_by_discord_id(discord_id)
    if account is None:
        raise HTTPException(status_code=404, detail=NotLinkedError.detail)
    return account


@router.post("/update-metadata", status_code=204)
async def update_metadata(
    body: UpdateMetadataRequest,
    context: AppContext = Depends(get_context),
) -> Response:
    """Re-derive and push role metadata for one linked user"""
    account = await _require_account(context, body.user_id)
    try:
        await context.metadata.sync_account(account)
    except ModLinkError as e:
        logger.error(f"Metadata update failed for {body.user_id}: {type(e).__name__}: {e.detail}")
        return error_redirect(context, e.detail)
    return Response(status_code=204)


@router.get("/show-metadata")
async def show_metadata(
    id: str | None = None,  # noqa: A002
    context: AppContext = Depends(get_context),
) -> dict:
    """The role-connection record Discord holds for a linked user"""
    if not id:
        raise HTTPException(status_code=400, detail="Missing id query parameter")
    account = await _require_account(context, id)
    try:
        return await context.metadata.read(account)
    except ProviderError as e:
        logger.warning(f"Could not read metadata for {id}: {type(e).__name__}: {e.detail}")
        raise HTTPException(status_code=502, detail=e.detail) from e
