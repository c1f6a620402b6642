"""Seed default forum categories

Revision ID: 002
Revises: 001
Create Date: 2026-10-18

"""
import uuid
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

DEFAULT_CATEGORIES = [
    ("General Discussion", "Talk about anything related to the community."),
    ("Coding Challenges", "Test your skills with fun coding problems."),
    ("Tutorials", "Learn and share knowledge with tutorials."),
    ("Bug Reports", "Report bugs and issues."),
    ("Feature Requests", "Suggest new features for the platform."),
    ("Off-Topic", "Chat about anything not covered in other categories."),
]

categories = sa.table(
    "categories",
    sa.column("id", UUID(as_uuid=True)),
    sa.column("name", sa.String),
    sa.column("description", sa.Text),
)


def upgrade() -> None:
    op.bulk_insert(
        categories,
        [{"id": uuid.uuid4(), "name": name, "description": description} for name, description in DEFAULT_CATEGORIES],
    )


def downgrade() -> None:
    op.execute(
        categories.delete().where(categories.c.name.in_([name for name, _ in DEFAULT_CATEGORIES]))
    )
