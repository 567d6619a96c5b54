"""add token invalid flag

Revision: 2
Revises: 1

Adds an invalid flag to tokens. Only the most recently inserted token
remains valid; every older token is considered superseded.
"""
from alembic import op
import sqlalchemy as sa


revision: int = 2
down_revision: int = 1


def upgrade() -> None:
    op.add_column("tokens", sa.Column("invalid", sa.Boolean(), nullable=True))
    op.execute("UPDATE tokens SET invalid = 1")
    op.execute(
        """
        UPDATE tokens SET invalid = 0
        WHERE id = (SELECT MAX(id) FROM tokens)
        """
    )
