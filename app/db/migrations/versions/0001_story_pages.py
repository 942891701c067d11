"""stories, profiles and comments

Revision ID: 0001_story_pages
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

from app.db.types import GUID


revision = "0001_story_pages"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "stories",
        sa.Column("id", sa.String(length=128), primary_key=True),
        sa.Column("title", sa.String(length=256), nullable=False),
        sa.Column("story_content", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_stories_created_at", "stories", ["created_at"], unique=False)

    op.create_table(
        "profiles",
        sa.Column("user_id", sa.String(length=128), primary_key=True),
        sa.Column("username", sa.String(length=128), nullable=False),
        sa.Column("avatar_url", sa.String(length=512), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "comments",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("story_id", sa.String(length=128), sa.ForeignKey("stories.id"), nullable=False),
        sa.Column("story_position", sa.Integer(), nullable=False),
        sa.Column("story_position_old", sa.String(length=32), nullable=False),
        sa.Column("story_node", sa.String(length=256), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("comment_type", sa.String(length=32), nullable=False),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_comments_story_id", "comments", ["story_id"], unique=False)
    op.create_index("ix_comments_story_position", "comments", ["story_position"], unique=False)
    op.create_index("ix_comments_user_id", "comments", ["user_id"], unique=False)
    op.create_index("ix_comments_created_at", "comments", ["created_at"], unique=False)
    op.create_index(
        "ix_comments_story_position_created",
        "comments",
        ["story_id", "story_position", "created_at"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_comments_story_position_created", table_name="comments")
    op.drop_index("ix_comments_created_at", table_name="comments")
    op.drop_index("ix_comments_user_id", table_name="comments")
    op.drop_index("ix_comments_story_position", table_name="comments")
    op.drop_index("ix_comments_story_id", table_name="comments")
    op.drop_table("comments")
    op.drop_table("profiles")
    op.drop_index("ix_stories_created_at", table_name="stories")
    op.drop_table("stories")
