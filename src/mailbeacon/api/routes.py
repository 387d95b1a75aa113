"""
API routes for the Mailbeacon service.

Account CRUD, the recent-notifications query and health probes. Every
account mutation re-broadcasts the account list to live subscribers.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from loguru import logger
from pydantic import BaseModel, Field

from mailbeacon.domain import (
    Account,
    AccountNotFoundError,
    DuplicateAccountError,
    MailProtocol,
    NotificationEvent,
    StoreError,
)
from mailbeacon.infrastructure import get_settings
from mailbeacon.service import MailMonitor

router = APIRouter()


def get_monitor(request: Request) -> MailMonitor:
    return request.app.state.monitor


# ============================================================================
# Request/Response Models
# ============================================================================


class AccountCreate(BaseModel):
    """Request body for creating an account."""

    email: str = Field(..., min_length=3, description="Mailbox address, also the login name")
    password: str = Field(..., description="Plaintext credential submitted at login")
    host: str = Field(..., min_length=1)
    port: int = Field(..., ge=1, le=65535)
    protocol: MailProtocol
    is_active: bool = Field(True, alias="isActive")

    model_config = {"populate_by_name": True}


class AccountUpdate(BaseModel):
    """Request body for updating an account; omitted fields are unchanged."""

    email: str | None = Field(None, min_length=3)
    password: str | None = None
    host: str | None = Field(None, min_length=1)
    port: int | None = Field(None, ge=1, le=65535)
    protocol: MailProtocol | None = None
    is_active: bool | None = Field(None, alias="isActive")

    model_config = {"populate_by_name": True}


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: str
    version: str


class ReadinessResponse(BaseModel):
    """Readiness check response with service status."""

    status: str
    timestamp: str
    services: dict[str, str]


def _dump(account: Account) -> dict[str, Any]:
    return account.model_dump(mode="json", by_alias=True)


# ============================================================================
# Health Endpoints
# ============================================================================


@router.get("/health", response_model=HealthResponse, tags=["health"])
async def health_check() -> HealthResponse:
    """Basic health check endpoint."""
    settings = get_settings()
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc).isoformat(),
        version=settings.app_version,
    )


@router.get("/health/ready", response_model=ReadinessResponse, tags=["health"])
async def readiness_check(monitor: MailMonitor = Depends(get_monitor)) -> ReadinessResponse:
    """Readiness check with store and scheduler status."""
    services: dict[str, str] = {}

    try:
        health = await asyncio.to_thread(monitor.health_check)
        services["store"] = health.get("status", "unknown")
    except Exception as e:
        logger.warning(f"Store health check failed: {e}")
        services["store"] = f"error: {str(e)[:50]}"

    services["scheduler"] = "running" if monitor.scheduler.running else "stopped"
    services["subscribers"] = str(monitor.hub.subscriber_count)

    ready = services["store"] in ("healthy", "unknown") and monitor.scheduler.running
    return ReadinessResponse(
        status="ready" if ready else "degraded",
        timestamp=datetime.now(timezone.utc).isoformat(),
        services=services,
    )


# ============================================================================
# Accounts
# ============================================================================


@router.get("/api/accounts", tags=["accounts"])
async def list_accounts(monitor: MailMonitor = Depends(get_monitor)) -> list[dict[str, Any]]:
    accounts = await asyncio.to_thread(monitor.accounts.list)
    return [_dump(a) for a in accounts]


@router.post("/api/accounts", tags=["accounts"])
async def create_account(
    body: AccountCreate,
    monitor: MailMonitor = Depends(get_monitor),
) -> dict[str, Any]:
    try:
        account = await asyncio.to_thread(monitor.accounts.create, body.model_dump())
    except DuplicateAccountError as e:
        raise HTTPException(status_code=409, detail=str(e))

    await monitor.hub.publish_accounts()
    return _dump(account)


@router.put("/api/accounts/{account_id}", tags=["accounts"])
async def update_account(
    account_id: int,
    body: AccountUpdate,
    monitor: MailMonitor = Depends(get_monitor),
) -> dict[str, Any]:
    changes = body.model_dump(exclude_none=True)
    try:
        account = await asyncio.to_thread(monitor.accounts.update, account_id, changes)
    except AccountNotFoundError:
        raise HTTPException(status_code=404, detail="Account not found")
    except DuplicateAccountError as e:
        raise HTTPException(status_code=409, detail=str(e))

    await monitor.hub.publish_accounts()
    return _dump(account)


@router.delete("/api/accounts/{account_id}", tags=["accounts"])
async def delete_account(
    account_id: int,
    monitor: MailMonitor = Depends(get_monitor),
) -> dict[str, bool]:
    try:
        await asyncio.to_thread(monitor.accounts.delete, account_id)
    except AccountNotFoundError:
        raise HTTPException(status_code=404, detail="Account not found")

    await monitor.hub.publish_accounts()
    return {"success": True}


# ============================================================================
# Notifications
# ============================================================================


@router.get("/api/notifications", tags=["notifications"])
async def list_notifications(
    limit: int = Query(50, ge=1, le=500),
    monitor: MailMonitor = Depends(get_monitor),
) -> list[dict[str, Any]]:
    """Most recent notifications, newest first."""
    try:
        events: list[NotificationEvent] = await asyncio.to_thread(monitor.events.recent, limit)
    except StoreError as e:
        logger.error(f"Failed to load notifications: {e}")
        raise HTTPException(status_code=503, detail="Notification store unavailable")
    return [ev.model_dump(mode="json", by_alias=True) for ev in events]
