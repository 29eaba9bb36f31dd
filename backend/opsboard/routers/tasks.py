"""
Tasks Router — Kanban board (TODO / IN_PROGRESS / DONE).
"""

import logging
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from pydantic import BaseModel
from typing import Optional
from opsboard.database import get_db
from opsboard.models import Task, TaskPriority, TaskStatus
from opsboard.services.workspace_service import group_by_status
from opsboard.utils import parse_uuid

logger = logging.getLogger(__name__)

router = APIRouter()


class TaskCreate(BaseModel):
    title: str
    description: Optional[str] = None
    priority: TaskPriority = TaskPriority.MEDIUM
    assignee: Optional[str] = None


class TaskStatusUpdate(BaseModel):
    status: TaskStatus


def _task_to_response(t: Task) -> dict:
    return {
        "id": str(t.id),
        "title": t.title,
        "description": t.description,
        "status": t.status,
        "priority": t.priority,
        "assignee": t.assignee,
        "created_at": t.created_at,
    }


async def _get_task(db: AsyncSession, task_id: str) -> Task:
    result = await db.execute(select(Task).where(Task.id == parse_uuid(task_id, "task_id")))
    task = result.scalar_one_or_none()
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


@router.get("")
async def list_tasks(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(Task).order_by(Task.created_at.desc()))
    return [_task_to_response(t) for t in result.scalars().all()]


@router.get("/board")
async def get_board(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(Task).order_by(Task.created_at.desc()))
    groups = group_by_status(result.scalars().all(), [s.value for s in TaskStatus])
    return {status: [_task_to_response(t) for t in tasks] for status, tasks in groups.items()}


@router.post("")
async def create_task(payload: TaskCreate, db: AsyncSession = Depends(get_db)):
    if not payload.title.strip():
        raise HTTPException(status_code=400, detail="Title is required")
    task = Task(
        title=payload.title.strip(),
        description=payload.description,
        status=TaskStatus.TODO.value,
        priority=payload.priority.value,
        assignee=payload.assignee,
    )
    db.add(task)
    await db.flush()
    await db.refresh(task)
    return _task_to_response(task)


@router.post("/{task_id}/status")
async def update_task_status(task_id: str, payload: TaskStatusUpdate, db: AsyncSession = Depends(get_db)):
    task = await _get_task(db, task_id)
    task.status = payload.status.value
    await db.flush()
    logger.info(f"Task {task.id} moved to {task.status}")
    return _task_to_response(task)


@router.delete("/{task_id}")
async def delete_task(task_id: str, db: AsyncSession = Depends(get_db)):
    task = await _get_task(db, task_id)
    await db.delete(task)
    return {"status": "deleted"}
