"""Create sites and blocked_agents tables for robots.txt scan results.

Revision ID: 3f1c2a9d8b70
Revises:
Create Date: 2026-10-17
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from advanced_alchemy.types import BigIntIdentity


revision: str = "3f1c2a9d8b70"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "sites",
        sa.Column("id", BigIntIdentity, nullable=False),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("rank", sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_sites"),
        sa.UniqueConstraint("url", name="uq_sites_url"),
    )

    op.create_table(
        "blocked_agents",
        sa.Column("id", BigIntIdentity, nullable=False),
        sa.Column("site_id", BigIntIdentity, nullable=False),
        sa.Column("user_agent", sa.String(512), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_blocked_agents"),
        sa.ForeignKeyConstraint(
            ["site_id"],
            ["sites.id"],
            name="fk_blocked_agents_site_id_sites",
            ondelete="CASCADE",
        ),
    )
    op.create_index(
        "ix_blocked_agents_user_agent",
        "blocked_agents",
        ["user_agent"],
    )
    op.create_index(
        "ix_blocked_agents_site_id",
        "blocked_agents",
        ["site_id"],
    )


def downgrade() -> None:
    op.drop_index("ix_blocked_agents_site_id", table_name="blocked_agents")
    op.drop_index("ix_blocked_agents_user_agent", table_name="blocked_agents")
    op.drop_table("blocked_agents")
    op.drop_table("sites")
