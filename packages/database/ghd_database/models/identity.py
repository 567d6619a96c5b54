from typing import Optional

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

NEVER_REFRESHED: int = -1


class User(SQLModel, table=True):
    """A tracked GitHub account. The primary key is GitHub's own numeric id."""
    __tablename__ = "users"

    id: int = Field(sa_column=sa.Column(sa.Integer, primary_key=True, autoincrement=False))
    login: str = Field(unique=True, index=True)
    name: str = Field(default="")
    avatar_url: str = Field(default="")


class UserRefresh(SQLModel, table=True):
    __tablename__ = "user_refresh"

    id: int = Field(
        sa_column=sa.Column(
            sa.Integer, sa.ForeignKey("users.id"), primary_key=True, autoincrement=False
        )
    )
    # Epoch seconds; NEVER_REFRESHED until the first successful reconciliation
    refresh_at: Optional[int] = Field(default=NEVER_REFRESHED)


class Token(SQLModel, table=True):
    """API credentials. Superseded rows are marked invalid, never deleted."""
    __tablename__ = "tokens"
    __table_args__ = (
        sa.UniqueConstraint("token", "user_id"),
        {"sqlite_autoincrement": True},
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    token: str
    user_id: Optional[int] = Field(default=None)
    invalid: bool = Field(default=False)


class Setting(SQLModel, table=True):
    __tablename__ = "settings"

    key: str = Field(primary_key=True)
    value: str
