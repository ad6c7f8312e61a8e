"""
Route API pour l'analyse de prompt (outil MCP `prompt_understanding`).
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from .tools import failure_status, read_json_object
from ..dependencies import get_gateway
from ...core.exceptions import GatewayError, NotReadyError
from ...services.gateway import Gateway

logger = logging.getLogger(__name__)

router = APIRouter()


class PromptAnalysisRequest(BaseModel):
    prompt: Optional[str] = None


@router.post("/prompt/analyze")
async def api_analyze_prompt(request: Request, gateway: Gateway = Depends(get_gateway)):
    """Analyse un texte libre via l'outil d'analyse du serveur MCP."""
    data = await read_json_object(request)
    try:
        payload = PromptAnalysisRequest.model_validate(data) if data is not None else None
    except ValidationError:
        payload = None

    if payload is None or not payload.prompt:
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "Prompt requis", "prompt": None},
        )

    try:
        analysis = await gateway.analyze_prompt(payload.prompt)
    except GatewayError as e:
        if not isinstance(e, NotReadyError):
            logger.error(f"❌ Analyse de prompt échouée: {e}")
        return JSONResponse(
            status_code=failure_status(e),
            content={
                "success": False,
                "error": e.message,
                "code": e.code,
                "prompt": payload.prompt,
            },
        )

    return {"success": True, "analysis": analysis, "prompt": payload.prompt}
