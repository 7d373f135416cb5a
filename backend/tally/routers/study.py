"""
Study API Router

Endpoints for goals, materials, progress logging and the derived
dashboard/heatmap views.

Endpoints:
- GET /api/study/goals - List goals
- POST /api/study/goals - Create a goal
- PATCH /api/study/goals/{goal_id} - Edit a goal
- POST /api/study/goals/{goal_id}/select - Make a goal the selected one
- DELETE /api/study/goals/{goal_id} - Delete a goal with everything it owns
- GET /api/study/goals/{goal_id}/dashboard - Quotas, progress, streak, week
- GET /api/study/goals/{goal_id}/heatmap - Activity heatmap
- POST /api/study/goals/{goal_id}/materials - Add a material
- PATCH /api/study/goals/{goal_id}/materials/{material_id} - Edit a material
- DELETE /api/study/goals/{goal_id}/materials/{material_id} - Delete a material
- POST /api/study/goals/{goal_id}/materials/{material_id}/progress - Log study
- GET /api/study/goals/{goal_id}/materials/{material_id}/today - Today's amount
- PATCH /api/study/goals/{goal_id}/entries/{entry_id} - Correct an entry
- DELETE /api/study/goals/{goal_id}/entries/{entry_id} - Delete an entry
"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tally.config import settings
from tally.db.base import get_db
from tally.db.repository import SqlStudyRepository, StudyRepository
from tally.middleware.error_handling import handle_endpoint_errors
from tally.models.base import ErrorDetail, SuccessResponse
from tally.models.study import (
    AdjustEntryRequest,
    AdjustEntryResponse,
    CreateGoalRequest,
    CreateMaterialRequest,
    DashboardResponse,
    Goal,
    GoalDeletedResponse,
    HeatmapResponse,
    Material,
    RecordProgressRequest,
    RecordProgressResponse,
    TodayAmountResponse,
    UpdateGoalRequest,
    UpdateMaterialRequest,
)
from tally.services.study import calendar
from tally.services.study.tracker import StudyTrackerService

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/api/study",
    tags=["study"],
    responses={404: {"model": ErrorDetail}, 503: {"model": ErrorDetail}},
)


# ===========================================
# Dependency Injection
# ===========================================


async def get_repository(
    db: AsyncSession = Depends(get_db),
) -> StudyRepository:
    """Get study repository."""
    return SqlStudyRepository(db)


async def get_tracker(
    goal_id: str,
    repository: StudyRepository = Depends(get_repository),
) -> StudyTrackerService:
    """Get a tracker loaded with the goal's snapshot."""
    return await StudyTrackerService.load(repository, goal_id)


# ===========================================
# Goal Endpoints
# ===========================================


@router.get("/goals", response_model=list[Goal])
@handle_endpoint_errors("List goals")
async def list_goals(
    repository: StudyRepository = Depends(get_repository),
) -> list[Goal]:
    """List goals, oldest first."""
    return await repository.list_goals()


@router.post("/goals", response_model=Goal, status_code=201)
@handle_endpoint_errors("Create goal")
async def create_goal(
    request: CreateGoalRequest,
    repository: StudyRepository = Depends(get_repository),
) -> Goal:
    """
    Create a goal.

    The first goal created becomes the selected one.
    """
    return await repository.add_goal(Goal(**request.model_dump()))


@router.patch("/goals/{goal_id}", response_model=Goal)
@handle_endpoint_errors("Update goal")
async def update_goal(
    request: UpdateGoalRequest,
    tracker: StudyTrackerService = Depends(get_tracker),
) -> Goal:
    """
    Edit a goal's name, exam date, weekly target or quota mode.

    Send ``exam_date: null`` to clear the exam date.
    """
    return await tracker.update_goal(**request.changes())


@router.post("/goals/{goal_id}/select", response_model=Goal)
@handle_endpoint_errors("Select goal")
async def select_goal(
    goal_id: str,
    repository: StudyRepository = Depends(get_repository),
) -> Goal:
    """Make a goal the selected one; every other goal is deselected."""
    return await repository.select_goal(goal_id)


@router.delete("/goals/{goal_id}", response_model=GoalDeletedResponse)
@handle_endpoint_errors("Delete goal")
async def delete_goal(
    goal_id: str,
    repository: StudyRepository = Depends(get_repository),
) -> GoalDeletedResponse:
    """
    Delete a goal together with its materials, entries, memos and memo images.

    When the deleted goal was selected, the oldest remaining goal becomes
    selected.
    """
    selected = await repository.delete_goal(goal_id)
    return GoalDeletedResponse(deleted_goal_id=goal_id, selected_goal=selected)


# ===========================================
# Dashboard & Heatmap
# ===========================================


@router.get("/goals/{goal_id}/dashboard", response_model=DashboardResponse)
@handle_endpoint_errors("Get dashboard")
async def get_dashboard(
    today: Optional[date] = Query(None, description="Reference day (defaults to today)"),
    tracker: StudyTrackerService = Depends(get_tracker),
) -> DashboardResponse:
    """
    Get the home screen summary for a goal.

    Returns:
    - Per-material daily quota, today's amount and overall progress
    - Current and longest streak with milestones
    - This week's study days against the weekly target
    - Days until the exam
    """
    return tracker.dashboard(today)


@router.get("/goals/{goal_id}/heatmap", response_model=HeatmapResponse)
@handle_endpoint_errors("Get heatmap")
async def get_heatmap(
    months: int = Query(
        settings.HEATMAP_DEFAULT_MONTHS,
        ge=1,
        le=settings.HEATMAP_MAX_MONTHS,
        description="Months of history to include",
    ),
    today: Optional[date] = Query(None, description="Reference day (defaults to today)"),
    tracker: StudyTrackerService = Depends(get_tracker),
) -> HeatmapResponse:
    """Get summed study amounts per day over the trailing months."""
    return tracker.heatmap_response(months, today)


# ===========================================
# Material Endpoints
# ===========================================


@router.post("/goals/{goal_id}/materials", response_model=Material, status_code=201)
@handle_endpoint_errors("Add material")
async def add_material(
    goal_id: str,
    request: CreateMaterialRequest,
    tracker: StudyTrackerService = Depends(get_tracker),
) -> Material:
    """Add a material to a goal; progress starts at zero."""
    material = Material(goal_id=goal_id, **request.model_dump())
    return await tracker.add_material(material)


@router.patch("/goals/{goal_id}/materials/{material_id}", response_model=Material)
@handle_endpoint_errors("Update material")
async def update_material(
    material_id: str,
    request: UpdateMaterialRequest,
    tracker: StudyTrackerService = Depends(get_tracker),
) -> Material:
    """
    Edit a material's name, unit, total, quota configuration or order.

    Progress is kept; shrinking the total below it caps the progress.
    """
    return await tracker.update_material(material_id, **request.changes())


@router.delete("/goals/{goal_id}/materials/{material_id}", response_model=SuccessResponse)
@handle_endpoint_errors("Delete material")
async def delete_material(
    material_id: str,
    tracker: StudyTrackerService = Depends(get_tracker),
) -> SuccessResponse:
    """Delete a material and all of its logged entries."""
    await tracker.delete_material(material_id)
    return SuccessResponse(message=f"Material {material_id} deleted")


@router.post(
    "/goals/{goal_id}/materials/{material_id}/progress",
    response_model=RecordProgressResponse,
    status_code=201,
)
@handle_endpoint_errors("Record progress")
async def record_progress(
    material_id: str,
    request: RecordProgressRequest,
    tracker: StudyTrackerService = Depends(get_tracker),
) -> RecordProgressResponse:
    """
    Log study on a material.

    The full amount is kept in the log; progress stops at the material's
    total and ``applied_amount`` reports how much was actually applied.
    """
    return await tracker.record(material_id, request.amount, request.day)


@router.get(
    "/goals/{goal_id}/materials/{material_id}/today",
    response_model=TodayAmountResponse,
)
@handle_endpoint_errors("Get today's amount")
async def get_today_amount(
    material_id: str,
    today: Optional[date] = Query(None, description="Reference day (defaults to today)"),
    tracker: StudyTrackerService = Depends(get_tracker),
) -> TodayAmountResponse:
    """Get the amount logged on a material today."""
    day = today or calendar.today()
    return TodayAmountResponse(
        material_id=material_id,
        day=day,
        amount=tracker.today_amount(material_id, day),
    )


# ===========================================
# Entry Endpoints
# ===========================================


@router.patch("/goals/{goal_id}/entries/{entry_id}", response_model=AdjustEntryResponse)
@handle_endpoint_errors("Adjust entry")
async def adjust_entry(
    entry_id: str,
    request: AdjustEntryRequest,
    tracker: StudyTrackerService = Depends(get_tracker),
) -> AdjustEntryResponse:
    """
    Correct a logged amount by a signed delta.

    An entry corrected to zero or below is deleted; the material's progress
    moves by the same delta.
    """
    return await tracker.adjust_entry(entry_id, request.delta)


@router.delete("/goals/{goal_id}/entries/{entry_id}", response_model=SuccessResponse)
@handle_endpoint_errors("Delete entry")
async def delete_entry(
    entry_id: str,
    tracker: StudyTrackerService = Depends(get_tracker),
) -> SuccessResponse:
    """Delete a logged entry and take its amount back out of progress."""
    await tracker.delete_entry(entry_id)
    return SuccessResponse(message=f"Entry {entry_id} deleted")
