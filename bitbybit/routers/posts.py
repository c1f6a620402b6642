from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from bitbybit.dependencies import get_current_user, get_db
from bitbybit.models.post import Post, Reaction
from bitbybit.models.thread import Thread
from bitbybit.models.user import User
from bitbybit.schemas.common import Page
from bitbybit.schemas.forum import (
    PostResponse,
    PostWithRelations,
    PostWrite,
    ReactionResponse,
    ReactionWithUser,
    ReactionWrite,
)
from bitbybit.services.pagination import POSTS_PER_PAGE, paginate

logger = logging.getLogger(__name__)

router = APIRouter()


async def _require_thread(thread_id: UUID, db: AsyncSession) -> Thread:
    thread = await db.get(Thread, thread_id)
    if thread is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Thread not found")
    return thread


async def _get_post(post_id: UUID, db: AsyncSession) -> Post:
    result = await db.execute(
        select(Post).where(Post.id == post_id, Post.deleted_at.is_(None))
    )
    post = result.scalar_one_or_none()
    if post is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")
    return post


async def _get_user_post(post_id: UUID, user: User, db: AsyncSession) -> Post:
    result = await db.execute(
        select(Post).where(
            Post.id == post_id,
            Post.user_id == user.id,
            Post.deleted_at.is_(None),
        )
    )
    post = result.scalar_one_or_none()
    if post is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")
    return post


# ---------------------------------------------------------------------------
# Posts
# ---------------------------------------------------------------------------


@router.get("/threads/{thread_id}/posts", response_model=Page[PostWithRelations])
async def list_posts(
    thread_id: UUID,
    page: int = Query(1, ge=1),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await _require_thread(thread_id, db)
    stmt = (
        select(Post)
        .where(Post.thread_id == thread_id, Post.deleted_at.is_(None))
        .order_by(Post.created_at, Post.id)
        .options(selectinload(Post.user), selectinload(Post.reactions))
    )
    return await paginate(db, stmt, page, POSTS_PER_PAGE, PostWithRelations.model_validate)


@router.post(
    "/threads/{thread_id}/posts",
    response_model=PostResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_post(
    thread_id: UUID,
    body: PostWrite,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    thread = await _require_thread(thread_id, db)
    post = Post(thread_id=thread.id, user_id=user.id, content=body.content)
    db.add(post)
    await db.commit()
    await db.refresh(post)
    return post


@router.put("/posts/{post_id}", response_model=PostResponse)
async def update_post(
    post_id: UUID,
    body: PostWrite,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    post = await _get_user_post(post_id, user, db)
    post.content = body.content
    post.is_edited = True
    await db.commit()
    await db.refresh(post)
    return post


@router.delete("/posts/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_post(
    post_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    post = await _get_user_post(post_id, user, db)
    post.soft_delete()
    await db.commit()


# ---------------------------------------------------------------------------
# Reactions
# ---------------------------------------------------------------------------


@router.get("/posts/{post_id}/reactions", response_model=Page[ReactionWithUser])
async def list_reactions(
    post_id: UUID,
    page: int = Query(1, ge=1),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await _get_post(post_id, db)
    stmt = (
        select(Reaction)
        .where(Reaction.post_id == post_id, Reaction.deleted_at.is_(None))
        .order_by(Reaction.created_at, Reaction.id)
        .options(selectinload(Reaction.user))
    )
    return await paginate(db, stmt, page, POSTS_PER_PAGE, ReactionWithUser.model_validate)


async def _find_reaction(db: AsyncSession, post_id: UUID, user_id: UUID) -> Reaction | None:
    result = await db.execute(
        select(Reaction).where(Reaction.post_id == post_id, Reaction.user_id == user_id)
    )
    return result.scalar_one_or_none()


@router.post(
    "/posts/{post_id}/reactions",
    response_model=ReactionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def store_reaction(
    post_id: UUID,
    body: ReactionWrite,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Create, overwrite or restore the caller's single reaction on a post."""
    post = await _get_post(post_id, db)
    # Rollback expires loaded instances, so keep plain ids.
    pid, uid = post.id, user.id

    reaction = await _find_reaction(db, pid, uid)
    if reaction is None:
        reaction = Reaction(post_id=pid, user_id=uid, reaction_type=body.reaction_type)
        db.add(reaction)
        try:
            await db.commit()
        except IntegrityError:
            # Lost a race with a concurrent insert for the same (post, user).
            await db.rollback()
            logger.info("Concurrent reaction insert on post %s, updating instead", pid)
            reaction = await _find_reaction(db, pid, uid)
            if reaction is None:
                raise
        else:
            await db.refresh(reaction)
            return reaction

    reaction.reaction_type = body.reaction_type
    reaction.restore()
    await db.commit()
    await db.refresh(reaction)
    return reaction


@router.delete("/posts/{post_id}/reactions", status_code=status.HTTP_204_NO_CONTENT)
async def delete_reaction(
    post_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await _get_post(post_id, db)
    result = await db.execute(
        select(Reaction).where(
            Reaction.post_id == post_id,
            Reaction.user_id == user.id,
            Reaction.deleted_at.is_(None),
        )
    )
    reaction = result.scalar_one_or_none()
    if reaction is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reaction not found")
    reaction.soft_delete()
    await db.commit()
