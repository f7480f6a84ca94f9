# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""FastAPI application factory and HTTP schemas for the mail queue view.

Endpoints:
- ``GET /health``: liveness check (no authentication)
- ``GET /metrics``: Prometheus metrics
- ``GET /queues``: initialized queues
- ``POST /queues/{queue}``: create a queue
- ``GET /queues/{queue}/mails``: browse a queue, oldest first
- ``GET /queues/{queue}/size``: pending mail count
- ``DELETE /queues/{queue}/mails``: tombstone mails by sender, recipient or name

Every endpoint except ``/health`` requires the ``X-API-Token`` header when a
token is configured.

Example:
    Creating and running the API application::

        from mail_queue_view.core import MailQueueViewCore
        from mail_queue_view.api import create_app

        core = MailQueueViewCore(db_path="/data/queue_view.db")
        app = create_app(core, api_token="secret-token")

        uvicorn.run(app, host="0.0.0.0", port=8000)
"""

from typing import Optional, Dict, Any, List, Callable, AsyncContextManager
import logging

from fastapi import FastAPI, HTTPException, Depends, status
from fastapi.responses import Response
from fastapi.security import APIKeyHeader
from pydantic import BaseModel

from .core import MailQueueViewCore

logger = logging.getLogger(__name__)

app = FastAPI(title="Mail Queue View")
service: MailQueueViewCore | None = None
API_TOKEN_HEADER_NAME = "X-API-Token"
api_key_scheme = APIKeyHeader(name=API_TOKEN_HEADER_NAME, auto_error=False)
app.state.api_token = None

# Error codes reported as a temporary unavailability of the index
UNAVAILABLE_CODES = {"partition_read_failed"}


async def require_token(api_token: str | None = Depends(api_key_scheme)) -> None:
    """Validate the API token carried in the ``X-API-Token`` header.

    When no token is configured the dependency is bypassed.
    """
    expected = getattr(app.state, "api_token", None)
    if expected is None:
        return
    if not api_token or api_token != expected:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid or missing API token")

auth_dependency = Depends(require_token)


class CommandStatus(BaseModel):
    """Base schema shared by every response."""
    ok: bool
    error: Optional[str] = None
    code: Optional[str] = None


class QueueResponse(CommandStatus):
    queue: str


class QueuesResponse(CommandStatus):
    queues: List[str]


class MailInfo(BaseModel):
    """One browse result. ``error`` is set when the mail could not be loaded."""
    name: str
    enqueued_time: str
    slice: str
    bucket_id: int
    sender: Optional[str] = None
    recipients: List[str] = []
    state: Optional[str] = None
    subject: Optional[str] = None
    size: Optional[int] = None
    attributes: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    error_code: Optional[str] = None


class MailsResponse(CommandStatus):
    queue: str
    mails: List[MailInfo]


class SizeResponse(CommandStatus):
    queue: str
    size: int


class DeleteResponse(CommandStatus):
    queue: str
    deleted: int


def _raise_for_result(result: Dict[str, Any]) -> None:
    """Translate a failed command result into an HTTP error."""
    if result.get("ok") is True:
        return
    detail = {"error": result.get("error"), "code": result.get("code")}
    if result.get("code") in UNAVAILABLE_CODES:
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, detail=detail)
    if result.get("code"):
        raise HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)
    raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=detail)


def create_app(
    svc: MailQueueViewCore,
    api_token: str | None = None,
    lifespan: Callable[[FastAPI], AsyncContextManager] | None = None
) -> FastAPI:
    """Create and configure the FastAPI application.

    Parameters
    ----------
    svc:
        Instance of :class:`mail_queue_view.core.MailQueueViewCore`.
    api_token:
        Optional secret required in the ``X-API-Token`` header.
    lifespan:
        Optional lifespan context manager for startup/shutdown events.

    Returns
    -------
    FastAPI
        A configured application ready to be served by Uvicorn.
    """
    global service
    service = svc

    if lifespan is not None:
        api = FastAPI(title="Mail Queue View", lifespan=lifespan)
    else:
        api = app

    api.state.api_token = api_token
    app.state.api_token = api_token

    def _service() -> MailQueueViewCore:
        if not service:
            raise HTTPException(500, "Service not initialized")
        return service

    @api.get("/health")
    async def health():
        """Health check endpoint for container monitoring (no authentication required)."""
        return {"status": "ok"}

    @api.get("/metrics", dependencies=[auth_dependency])
    async def metrics():
        """Expose Prometheus metrics."""
        return Response(content=_service().metrics.generate_latest(), media_type="text/plain; version=0.0.4")

    @api.get("/queues", response_model=QueuesResponse, response_model_exclude_none=True, dependencies=[auth_dependency])
    async def list_queues():
        """List every initialized queue."""
        result = await _service().handle_command("listQueues", {})
        _raise_for_result(result)
        return QueuesResponse.model_validate(result)

    @api.post("/queues/{queue}", response_model=QueueResponse, response_model_exclude_none=True, dependencies=[auth_dependency])
    async def create_queue(queue: str):
        """Create a queue. An existing queue is left untouched."""
        result = await _service().handle_command("createQueue", {"queue": queue})
        _raise_for_result(result)
        return QueueResponse.model_validate(result)

    @api.get("/queues/{queue}/mails", response_model=MailsResponse, response_model_exclude_none=True, dependencies=[auth_dependency])
    async def list_mails(queue: str):
        """Browse a queue oldest first. A partition read failure returns 503."""
        result = await _service().handle_command("listMails", {"queue": queue})
        _raise_for_result(result)
        return MailsResponse.model_validate(result)

    @api.get("/queues/{queue}/size", response_model=SizeResponse, response_model_exclude_none=True, dependencies=[auth_dependency])
    async def queue_size(queue: str):
        result = await _service().handle_command("queueSize", {"queue": queue})
        _raise_for_result(result)
        return SizeResponse.model_validate(result)

    @api.delete("/queues/{queue}/mails", response_model=DeleteResponse, response_model_exclude_none=True, dependencies=[auth_dependency])
    async def delete_mails(
        queue: str,
        sender: Optional[str] = None,
        recipient: Optional[str] = None,
        name: Optional[str] = None,
    ):
        """Tombstone mails matching every given parameter. No parameter clears the queue."""
        payload = {"queue": queue, "sender": sender, "recipient": recipient, "name": name}
        result = await _service().handle_command("deleteMails", payload)
        _raise_for_result(result)
        logger.info(f"Deleted {result.get('deleted')} mails from queue '{queue}'")
        return DeleteResponse.model_validate(result)

    return api
