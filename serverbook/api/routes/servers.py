"""
Commands that talk to the user's running server: RCON and file listings.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from serverbook.api.deps import get_server_tools
from serverbook.db.session import get_db
from serverbook.schemas.booking import RconRequest, RconResponse
from serverbook.schemas.server import ServerFile
from serverbook.services.server_tools import ServerTools

router = APIRouter(prefix="/servers/users/{user_id}", tags=["Servers"])


@router.post("/rcon", response_model=RconResponse)
async def send_rcon_command(
    user_id: str,
    body: RconRequest,
    db: AsyncSession = Depends(get_db),
    tools: ServerTools = Depends(get_server_tools),
):
    """Run a command on the user's server, "status" when none is given."""
    return RconResponse(response=await tools.send_rcon_command(db, user_id, body.command))


@router.get("/rcon/suggestions", response_model=list[str])
async def rcon_suggestions(
    user_id: str,
    text: str = Query("", max_length=64),
    db: AsyncSession = Depends(get_db),
    tools: ServerTools = Depends(get_server_tools),
):
    return await tools.get_command_suggestions(db, user_id, text)


@router.get("/demos", response_model=list[ServerFile])
async def list_demos(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    tools: ServerTools = Depends(get_server_tools),
):
    return await tools.list_demos(db, user_id)


@router.get("/logs", response_model=list[ServerFile])
async def list_logs(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    tools: ServerTools = Depends(get_server_tools),
):
    return await tools.list_logs(db, user_id)
