"""FastAPI dependencies shared by the routers."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import Request

from app.core.settings import Settings

if TYPE_CHECKING:
    from app.integrations.servicedesk.client import ServiceDeskClient


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_servicedesk_client(request: Request) -> "ServiceDeskClient":
    """Return the ServiceDesk client created in the application lifespan."""
    return request.app.state.servicedesk_client
