# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""ASGI application entry point for uvicorn.

Usage:
    uvicorn mail_queue_view.server:app --host 0.0.0.0 --port 8000

Environment variables:
    MQV_CONFIG: Optional path to an INI configuration file
    MQV_API_TOKEN: Token required in the X-API-Token header
    MQV_DB_PATH, MQV_BUCKET_COUNT, ...: see ``mail_queue_view.config_loader``
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .api import create_app
from .core import MailQueueViewCore

_api_token = os.environ.get("MQV_API_TOKEN") or None

# Create the core service
_core = MailQueueViewCore(config_path=os.environ.get("MQV_CONFIG") or None)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler - opens and closes the database."""
    await _core.init()
    yield
    await _core.close()


# Create the configured application
app = create_app(_core, api_token=_api_token, lifespan=lifespan)
