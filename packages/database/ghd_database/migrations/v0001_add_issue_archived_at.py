"""add issue archived_at column

Revision: 1
Revises: 0

Adds archived_at to issues so users can hide issues from their feeds
without losing the cached row.
"""
from alembic import op
import sqlalchemy as sa


revision: int = 1
down_revision: int = 0


def upgrade() -> None:
    op.add_column("issues", sa.Column("archived_at", sa.Integer(), nullable=True))
