"""Create podcasts and episodes tables.

Revision ID: a1f3c9d2e7b4
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op  # type: ignore[attr-defined]

# revision identifiers, used by Alembic.
revision: str = "a1f3c9d2e7b4"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "podcasts",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("categories", sa.JSON(), nullable=False),
        sa.Column("link", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=False),
        sa.Column("subtitle", sa.String(), nullable=False),
        sa.Column("owner_name", sa.String(), nullable=False),
        sa.Column("owner_email", sa.String(), nullable=False),
        sa.Column("author", sa.String(), nullable=False),
        sa.Column("image", sa.String(), nullable=False),
        sa.Column("feed", sa.String(), nullable=False),
        sa.Column("slug", sa.String(), nullable=False),
        sa.Column("updated", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("feed", name="uq_podcasts_feed"),
        sa.UniqueConstraint("slug", name="uq_podcasts_slug"),
    )
    op.create_index("ix_podcasts_feed", "podcasts", ["feed"])
    op.create_index("ix_podcasts_slug", "podcasts", ["slug"])

    op.create_table(
        "episodes",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("podcast_id", sa.Integer(), nullable=False),
        sa.Column("podcast_slug", sa.String(), nullable=False),
        sa.Column("podcast_title", sa.String(), nullable=False),
        sa.Column("podcast_image", sa.String(), nullable=False),
        sa.Column("guid", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("published", sa.DateTime(), nullable=False),
        sa.Column("duration", sa.String(), nullable=False),
        sa.Column("summary", sa.String(), nullable=False),
        sa.Column("subtitle", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=False),
        sa.Column("image", sa.String(), nullable=False),
        sa.Column("content", sa.String(), nullable=False),
        sa.Column("enclosure_filesize", sa.String(), nullable=False),
        sa.Column("enclosure_filetype", sa.String(), nullable=False),
        sa.Column("enclosure_url", sa.String(), nullable=False),
        sa.Column("slug", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(
            ["podcast_id"], ["podcasts.id"], name="fk_episodes_podcast"
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("podcast_slug", "guid", name="uq_episodes_podcast_guid"),
    )
    op.create_index("ix_episodes_podcast_id", "episodes", ["podcast_id"])
    op.create_index("ix_episodes_podcast_slug", "episodes", ["podcast_slug"])


def downgrade() -> None:
    op.drop_index("ix_episodes_podcast_slug", table_name="episodes")
    op.drop_index("ix_episodes_podcast_id", table_name="episodes")
    op.drop_table("episodes")

    op.drop_index("ix_podcasts_slug", table_name="podcasts")
    op.drop_index("ix_podcasts_feed", table_name="podcasts")
    op.drop_table("podcasts")
