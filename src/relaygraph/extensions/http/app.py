"""
FastAPI surface for the relaygraph workflows.

Endpoints:
- POST /api/ai-chat - Parallel model comparison
- POST /api/rag - Retrieval-augmented answer over the context folder
- POST /api/multi-agent - Orchestrated web/filesystem agents
- POST /api/rollback-chat - One conversation turn, snapshotted
- POST /api/rollback - Roll a conversation back to an earlier version
- POST /api/upload-file - Add a file to the context folder
- GET /health - Health check

Every response uses the same envelope: `{success, data, message}` on success
and `{success: false, message, error}` with a non-2xx status on failure.
Bodies that fail validation get the failure envelope with status 400.
"""

import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import APIRouter, FastAPI, File, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from relaygraph.core.agent.client import ModelFactory, default_model_factory
from relaygraph.core.agent.messages import ChatMessage, last_message
from relaygraph.core.config import RelaySettings
from relaygraph.core.graph import CompiledGraph
from relaygraph.core.logging import configure_logging, get_logger, LogComponent
from relaygraph.core.retrieval import Embedder
from relaygraph.core.store import ConversationStore
from relaygraph.workflows import (
    comparison,
    comparison_graph_from_settings,
    conversation_graph_from_settings,
    multi_agent_graph_from_settings,
    retrieval,
    retrieval_graph_from_settings,
    take_turn,
)

logger = get_logger(LogComponent.HTTP)

MESSAGE_REQUIRED = "Message is required"
INVALID_BODY = "Invalid request body"
AI_FAILURE = "Failed to process AI request"
RAG_FAILURE = "Failed to process RAG request"


class MessageRequest(BaseModel):
    """Body of the single-message workflow endpoints."""
    message: Optional[str] = None


class ConversationTurnRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    thread_id: Optional[str] = Field(default=None, alias="threadId")
    message: Optional[str] = None


class RollbackRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    thread_id: Optional[str] = Field(default=None, alias="threadId")
    version: Optional[int] = None


class Workflows:
    """Compiled plans and shared collaborators for one app instance."""

    def __init__(
        self,
        settings: RelaySettings,
        models: ModelFactory,
        store: ConversationStore,
        embedder: Optional[Embedder] = None
    ) -> None:
        self.settings = settings
        self.store = store
        self.comparison: CompiledGraph = comparison_graph_from_settings(settings, models)
        self.retrieval: CompiledGraph = retrieval_graph_from_settings(settings, models, embedder)
        self.multi_agent: CompiledGraph = multi_agent_graph_from_settings(settings, models)
        self.conversation: CompiledGraph = conversation_graph_from_settings(settings, store, models)


def ok(data: Dict[str, Any], message: str) -> Dict[str, Any]:
    return {"success": True, "data": data, "message": message}


def fail(status_code: int, message: str, error: Optional[str] = None) -> JSONResponse:
    content: Dict[str, Any] = {"success": False, "message": message}
    if error is not None:
        content["error"] = error
    return JSONResponse(status_code=status_code, content=content)


async def invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.warning(f"Rejected body for {request.url.path}: {exc}")
    return fail(400, INVALID_BODY, str(exc))


def workflows(request: Request) -> Workflows:
    return request.app.state.workflows


router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Health check endpoint."""
    settings = workflows(request).settings
    return {
        "status": "healthy",
        "contextDir": str(settings.context_dir),
        "contextDirExists": settings.context_dir.is_dir(),
    }


@router.post("/api/ai-chat")
async def ai_chat(body: MessageRequest, request: Request):
    if not body.message:
        return fail(400, MESSAGE_REQUIRED)
    try:
        state = await workflows(request).comparison.ainvoke({"message": body.message})
    except Exception as e:
        logger.error(f"Error in AI chat endpoint: {e}")
        return fail(500, AI_FAILURE, str(e))

    return ok(
        {
            "message": body.message,
            "response": state.final_response,
            "selectedAgent": state.selected_agent,
            "reasoning": state.reasoning,
            "processedBy": comparison.PROCESSED_BY,
            "allResponses": comparison.all_responses(state),
        },
        "AI response generated and evaluated using graph model comparison",
    )


@router.post("/api/rag")
async def rag(body: MessageRequest, request: Request):
    if not body.message:
        return fail(400, MESSAGE_REQUIRED)
    flows = workflows(request)
    try:
        state = await flows.retrieval.ainvoke({
            "folder_path": str(flows.settings.context_dir),
            "message": body.message,
        })
    except Exception as e:
        logger.error(f"Error in RAG endpoint: {e}")
        return fail(500, RAG_FAILURE, str(e))

    return ok(
        {
            "message": body.message,
            "response": state.response,
            "context": state.context,
            "processedBy": retrieval.PROCESSED_BY,
        },
        "AI response generated from the context folder",
    )


@router.post("/api/multi-agent")
async def multi_agent(body: MessageRequest, request: Request):
    if not body.message:
        return fail(400, MESSAGE_REQUIRED)
    try:
        state = await workflows(request).multi_agent.ainvoke({
            "messages": [ChatMessage.user(body.message)],
        })
    except Exception as e:
        logger.error(f"Error in multi-agent endpoint: {e}")
        return fail(500, AI_FAILURE, str(e))

    last = last_message(state.messages)
    return ok(
        {
            "response": last.content if last else "No response generated.",
            "messages": [m.summary() for m in state.messages],
        },
        "AI response generated using multi-agent graph orchestrator",
    )


@router.post("/api/rollback-chat")
async def rollback_chat(body: ConversationTurnRequest, request: Request):
    if not body.message:
        return fail(400, MESSAGE_REQUIRED)
    flows = workflows(request)
    thread_id = body.thread_id or str(uuid.uuid4())
    try:
        snapshot = await take_turn(flows.conversation, flows.store, thread_id, body.message)
    except Exception as e:
        logger.error(f"Error in rollback-chat endpoint: {e}")
        return fail(500, "Failed to process chat turn.", str(e))

    return ok(
        {
            "threadId": thread_id,
            "version": snapshot.version,
            "response": snapshot.state[-1].content,
        },
        "Turn processed, state snapshotted.",
    )


@router.post("/api/rollback")
async def rollback(body: RollbackRequest, request: Request):
    store = workflows(request).store
    snapshot = None
    if body.thread_id is not None and body.version is not None:
        snapshot = await store.truncate_to(body.thread_id, body.version)
    if snapshot is None:
        return fail(
            404,
            f"No snapshot found for threadId='{body.thread_id}' at version={body.version}."
        )

    return ok(
        {
            "threadId": body.thread_id,
            "rolledBackToVersion": snapshot.version,
            "restoredState": [m.summary() for m in snapshot.state],
        },
        "Rollback successful. State restored.",
    )


@router.post("/api/upload-file")
async def upload_file(request: Request, file: Optional[UploadFile] = File(default=None)):
    if file is None or not file.filename:
        return fail(400, "No file provided")

    settings = workflows(request).settings
    limit_mb = settings.max_upload_bytes // (1024 * 1024)
    too_large = f"File size exceeds {limit_mb}MB limit"
    try:
        if file.size is not None and file.size > settings.max_upload_bytes:
            return fail(400, too_large)
        content = await file.read(settings.max_upload_bytes + 1)
        if len(content) > settings.max_upload_bytes:
            return fail(400, too_large)

        original = Path(file.filename).name
        suffix = Path(original).suffix
        unique = f"{Path(original).stem}_{int(time.time() * 1000)}{suffix}"

        settings.context_dir.mkdir(parents=True, exist_ok=True)
        target = settings.context_dir / unique
        target.write_bytes(content)
        logger.info(f"Saved upload {original} as {target}")
    except Exception as e:
        logger.error(f"Error uploading file: {e}")
        return fail(500, "Failed to upload file", str(e))

    return ok(
        {
            "filename": unique,
            "originalName": original,
            "size": len(content),
            "type": file.content_type,
            "savedAt": str(target),
            "uploadedAt": datetime.now(timezone.utc).isoformat(),
        },
        "File uploaded successfully",
    )


def create_app(
    settings: Optional[RelaySettings] = None,
    models: Optional[ModelFactory] = None,
    store: Optional[ConversationStore] = None,
    embedder: Optional[Embedder] = None
) -> FastAPI:
    """Build the FastAPI app.

    Args:
        settings: Service configuration; read from the environment when omitted
        models: Model client factory; defaults to the mirascope-backed clients
        store: Conversation store; a fresh in-memory store when omitted
        embedder: Embedder for the retrieval workflow; OpenAI when omitted
    """
    settings = settings or RelaySettings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(default_level=settings.log_level)
        logger.info(f"relaygraph service starting; context folder {settings.context_dir}")
        yield
        app.state.workflows.store.clear()

    app = FastAPI(
        title="relaygraph",
        description="Graph workflows for model comparison, retrieval, agents and conversations",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )
    app.state.workflows = Workflows(
        settings,
        models or default_model_factory,
        store if store is not None else ConversationStore(),
        embedder,
    )
    app.add_exception_handler(RequestValidationError, invalid_request)
    app.include_router(router)
    return app
