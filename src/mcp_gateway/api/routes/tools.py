"""Routes API: outils MCP.

- `GET /tools`: liste des outils (`tools/list`)
- `POST /tools/call`: appel d'un outil (`tools/call`), réponse étiquetée `toolName`
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError

from ..dependencies import get_gateway
from ...core.exceptions import GatewayError, NotReadyError
from ...services.gateway import Gateway

logger = logging.getLogger(__name__)

router = APIRouter()


class ToolCallRequest(BaseModel):
    name: Optional[str] = None
    arguments: Dict[str, Any] = Field(default_factory=dict)


async def read_json_object(request: Request) -> Optional[Dict[str, Any]]:
    """Corps JSON de la requête (objet), `{}` si vide, None si invalide."""
    body = await request.body()
    if not body:
        return {}
    try:
        data = await request.json()
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def failure_status(error: GatewayError) -> int:
    return 503 if isinstance(error, NotReadyError) else 500


@router.get("/tools")
async def api_list_tools(gateway: Gateway = Depends(get_gateway)):
    """Liste les outils exposés par le serveur MCP."""
    try:
        tools = await gateway.list_tools()
    except NotReadyError as e:
        return JSONResponse(status_code=503, content={"error": e.message, "code": e.code})
    except GatewayError as e:
        logger.error(f"❌ Liste des outils MCP échouée: {e}")
        return JSONResponse(status_code=500, content={"error": e.message, "code": e.code})

    return {"tools": tools}


@router.post("/tools/call")
async def api_call_tool(request: Request, gateway: Gateway = Depends(get_gateway)):
    """Appelle un outil MCP; succès comme échec sont étiquetés avec `toolName`."""
    data = await read_json_object(request)
    if data is None:
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "Corps JSON (objet) attendu", "toolName": None},
        )

    raw_name = data.get("name")
    try:
        payload = ToolCallRequest.model_validate(data)
    except ValidationError:
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "error": "`name` (chaîne) et `arguments` (objet) attendus",
                "toolName": raw_name if isinstance(raw_name, str) else None,
            },
        )

    if not payload.name:
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "Nom d'outil requis", "toolName": None},
        )

    try:
        result = await gateway.call_tool(payload.name, payload.arguments)
    except GatewayError as e:
        if not isinstance(e, NotReadyError):
            logger.error(f"❌ Appel outil MCP {payload.name} échoué: {e}")
        return JSONResponse(
            status_code=failure_status(e),
            content={
                "success": False,
                "error": e.message,
                "code": e.code,
                "toolName": payload.name,
            },
        )

    return {"success": True, "result": result, "toolName": payload.name}
