"""Forward-only schema migrations, keyed by the version they upgrade from."""

from types import ModuleType

from ghd_database.migrations import v0001_add_issue_archived_at, v0002_add_token_invalid

MIGRATIONS: dict[int, ModuleType] = {
    module.down_revision: module
    for module in (
        v0001_add_issue_archived_at,
        v0002_add_token_invalid,
    )
}

__all__ = ["MIGRATIONS"]
