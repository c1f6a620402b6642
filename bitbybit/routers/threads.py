from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bitbybit.dependencies import get_current_user, get_db
from bitbybit.models.category import Category
from bitbybit.models.thread import Thread
from bitbybit.models.user import User
from bitbybit.schemas.common import Page
from bitbybit.schemas.forum import ThreadCreate, ThreadResponse, ThreadUpdate
from bitbybit.services.pagination import paginate

router = APIRouter()


async def _get_thread(thread_id: UUID, db: AsyncSession) -> Thread:
    thread = await db.get(Thread, thread_id)
    if thread is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Thread not found")
    return thread


async def _get_user_thread(thread_id: UUID, user: User, db: AsyncSession) -> Thread:
    result = await db.execute(
        select(Thread).where(Thread.id == thread_id, Thread.user_id == user.id)
    )
    thread = result.scalar_one_or_none()
    if thread is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Thread not found")
    return thread


async def _require_category(category_id: UUID, db: AsyncSession) -> None:
    if await db.get(Category, category_id) is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"category_id": ["The selected category id is invalid."]},
        )


@router.get("", response_model=Page[ThreadResponse])
async def list_threads(
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100),
    category_id: Optional[UUID] = Query(None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    stmt = select(Thread).order_by(Thread.created_at, Thread.id)
    if category_id is not None:
        stmt = stmt.where(Thread.category_id == category_id)
    return await paginate(db, stmt, page, per_page, ThreadResponse.model_validate)


@router.post("", response_model=ThreadResponse, status_code=status.HTTP_201_CREATED)
async def create_thread(
    body: ThreadCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await _require_category(body.category_id, db)
    thread = Thread(
        user_id=user.id,
        category_id=body.category_id,
        title=body.title,
        body=body.body,
        tags=body.tags,
        notification=body.notification,
    )
    db.add(thread)
    await db.commit()
    await db.refresh(thread)
    return thread


@router.get("/{thread_id}", response_model=ThreadResponse)
async def get_thread(
    thread_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await _get_thread(thread_id, db)


@router.put("/{thread_id}", response_model=ThreadResponse)
async def update_thread(
    thread_id: UUID,
    body: ThreadUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    thread = await _get_user_thread(thread_id, user, db)
    changes = {k: v for k, v in body.model_dump(exclude_unset=True).items() if v is not None or k == "tags"}
    if "category_id" in changes:
        await _require_category(changes["category_id"], db)
    for field, value in changes.items():
        setattr(thread, field, value)
    await db.commit()
    await db.refresh(thread)
    return thread


@router.delete("/{thread_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_thread(
    thread_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    thread = await _get_user_thread(thread_id, user, db)
    await db.delete(thread)
    await db.commit()
