"""Create users, teams, assets and share tables

Revision ID: 001
Revises: None
Create Date: 2024-03-01 00:00:00.000000+00:00

What:  Creates the whole AssetHub schema.
How:   Every foreign key cascades on delete. Share tables use a composite
       primary key (asset, grantee): one grant per pair, re-sharing updates
       the row in place.

Indexes:
    owner_id on folders / notes         → list-by-owner
    folder_id on notes                  → notes of a folder, cascade delete
    shared_with_user_id on share tables → list-shared-with
    user_id on team_managers / members  → teams of a user

Rollback: downgrade() drops every table (destructive).
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _created_at(name: str = "created_at") -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    )


def _user_fk(name: str, primary_key: bool = False) -> sa.Column:
    return sa.Column(
        name,
        sa.Uuid(),
        sa.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        primary_key=primary_key,
    )


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("username", sa.String(100), nullable=False, unique=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("role", sa.String(20), nullable=False, server_default=sa.text("'member'")),
        _created_at(),
        sa.CheckConstraint("role IN ('manager', 'member')", name="ck_users_role"),
    )

    # ── Teams ─────────────────────────────────────────────────────────────
    op.create_table(
        "teams",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        _user_fk("created_by"),
        _created_at(),
    )
    for table in ("team_managers", "team_members"):
        op.create_table(
            table,
            sa.Column(
                "team_id",
                sa.Uuid(),
                sa.ForeignKey("teams.id", ondelete="CASCADE"),
                primary_key=True,
            ),
            _user_fk("user_id", primary_key=True),
            _created_at("added_at"),
        )
        op.create_index(f"idx_{table}_user", table, ["user_id"])

    # ── Assets ────────────────────────────────────────────────────────────
    op.create_table(
        "folders",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=sa.text("''")),
        _user_fk("owner_id"),
        _created_at(),
        _created_at("updated_at"),
    )
    op.create_index("idx_folders_owner", "folders", ["owner_id"])

    op.create_table(
        "notes",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("body", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column(
            "folder_id",
            sa.Uuid(),
            sa.ForeignKey("folders.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _user_fk("owner_id"),
        _created_at(),
        _created_at("updated_at"),
    )
    op.create_index("idx_notes_owner", "notes", ["owner_id"])
    op.create_index("idx_notes_folder", "notes", ["folder_id"])

    # ── Grants ────────────────────────────────────────────────────────────
    for table, asset_key, asset_table in (
        ("folder_shares", "folder_id", "folders"),
        ("note_shares", "note_id", "notes"),
    ):
        op.create_table(
            table,
            sa.Column(
                asset_key,
                sa.Uuid(),
                sa.ForeignKey(f"{asset_table}.id", ondelete="CASCADE"),
                primary_key=True,
            ),
            _user_fk("shared_with_user_id", primary_key=True),
            sa.Column("access_level", sa.String(10), nullable=False),
            _user_fk("shared_by"),
            _created_at(),
            sa.CheckConstraint(
                "access_level IN ('read', 'write')", name=f"ck_{table}_level"
            ),
        )
        op.create_index(f"idx_{table}_user", table, ["shared_with_user_id"])


def downgrade() -> None:
    for table in (
        "note_shares",
        "folder_shares",
        "notes",
        "folders",
        "team_members",
        "team_managers",
        "teams",
        "users",
    ):
        op.drop_table(table)
