"""
HTTP API -- FastAPI application factory.

  POST   /api/chat                                -- one role answers
  POST   /api/group-chat                          -- every active role answers
  DELETE /api/conversations/{role_id}/{session_id} -- forget a conversation
  GET    /api/roles                               -- role catalog
  GET    /api/health                              -- liveness

Run with:

    uvicorn sevensons.api:create_app --factory --port 8000
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from . import __version__
from .config import load_config
from .errors import SevenSonsError, ValidationError
from .service import ChatService

logger = logging.getLogger(__name__)


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: Optional[str] = None
    role_name: Optional[str] = Field(None, alias="roleName")
    session_id: Optional[str] = Field(None, alias="sessionId")
    user_id: Optional[str] = Field(None, alias="userId")


class GroupChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: Optional[str] = None
    session_id: Optional[str] = Field(None, alias="sessionId")
    user_id: Optional[str] = Field(None, alias="userId")


def _failure(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


def create_app(service: Optional[ChatService] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await app.state.service.aclose()

    app = FastAPI(title="sevensons", version=__version__, lifespan=lifespan)
    app.state.service = service or ChatService.from_config(load_config())

    @app.exception_handler(RequestValidationError)
    async def _bad_request(request: Request, exc: RequestValidationError):
        logger.warning("Malformed request to %s: %s", request.url.path, exc.errors())
        return _failure(400, "请求格式错误")

    @app.exception_handler(ValidationError)
    async def _validation_error(request: Request, exc: ValidationError):
        return _failure(exc.status_code, str(exc))

    @app.exception_handler(SevenSonsError)
    async def _service_error(request: Request, exc: SevenSonsError):
        logger.error("Request to %s failed: %s", request.url.path, exc)
        return _failure(500, str(exc) or "服务器内部错误")

    @app.post("/api/chat")
    async def chat(body: ChatRequest, request: Request):
        data = await request.app.state.service.chat(
            body.message, body.role_name, body.session_id, body.user_id
        )
        return {"success": True, "data": data}

    @app.post("/api/group-chat")
    async def group_chat(body: GroupChatRequest, request: Request):
        data = await request.app.state.service.group_chat(
            body.message, body.session_id, body.user_id
        )
        return {"success": True, "data": data}

    @app.delete("/api/conversations/{role_id}/{session_id}")
    async def clear_conversation(role_id: str, session_id: str, request: Request):
        request.app.state.service.clear(role_id, session_id)
        return {"success": True}

    @app.get("/api/roles")
    async def list_roles(request: Request):
        return {"success": True, "data": request.app.state.service.list_roles()}

    @app.get("/api/health")
    async def health():
        return {"status": "ok", "version": __version__}

    return app
