"""Switchover API: migration, rollback, validation and status endpoints.

Migration and rollback failures are returned as outcome objects rather
than raised: 200 on success, 409 when another operation is in flight,
500 for any other failure.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from src.api.dependencies import get_controller, get_system
from src.api.models import AbortResponse
from src.api_errors import ConflictError, ErrorCode, ValidationError
from src.bluegreen import (
    Environment,
    FailureKind,
    MigrationController,
    MigrationOutcome,
    SwitchoverSystem,
)

logger = logging.getLogger(__name__)
router = APIRouter(tags=["switchover"])


def _outcome_status(outcome: MigrationOutcome) -> int:
    if outcome.success:
        return 200
    if outcome.failure_kind == FailureKind.CONFLICT:
        return 409
    return 500


@router.get("/status")
async def system_status(system: SwitchoverSystem = Depends(get_system)):
    return system.controller.system_status()


@router.get("/migration")
async def migration_state(controller: MigrationController = Depends(get_controller)):
    return controller.status().to_dict()


@router.get("/health/history")
async def health_history(
    limit: Optional[int] = None,
    system: SwitchoverSystem = Depends(get_system),
):
    """Most recent health verdicts, oldest first."""
    capacity = system.config.health_history_size
    if limit is None:
        limit = min(10, capacity)
    if not 1 <= limit <= capacity:
        raise ValidationError(
            f"limit must be between 1 and {capacity}",
            error_code=ErrorCode.INVALID_LIMIT,
            field="limit",
        )
    return {
        "history": [v.to_dict() for v in system.monitor.recent(limit)],
        "summary": system.monitor.summary(),
    }


@router.get("/validate")
async def validate(controller: MigrationController = Depends(get_controller)):
    report = await controller.validate_environments()
    return report.to_dict()


@router.post("/switch/{environment}")
async def switch(
    environment: Environment,
    controller: MigrationController = Depends(get_controller),
):
    logger.info("Starting gradual migration to %s environment", environment.value.upper())
    outcome = await controller.begin_migration(environment)
    body = {
        **outcome.to_dict(),
        "deployment": environment.value,
        "type": "gradual-migration",
    }
    return JSONResponse(status_code=_outcome_status(outcome), content=body)


@router.post("/rollback")
async def rollback(controller: MigrationController = Depends(get_controller)):
    logger.warning("Emergency rollback initiated")
    outcome = await controller.rollback()
    body = {**outcome.to_dict(), "type": "emergency-rollback"}
    return JSONResponse(status_code=_outcome_status(outcome), content=body)


@router.post("/abort", response_model=AbortResponse)
async def abort(controller: MigrationController = Depends(get_controller)):
    if not controller.abort():
        raise ConflictError(
            "No migration in progress", error_code=ErrorCode.NO_MIGRATION_IN_PROGRESS
        )
    return AbortResponse(
        success=True,
        message="Abort requested; migration will roll back before its next step",
    )
