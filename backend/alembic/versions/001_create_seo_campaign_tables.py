"""Create SEO campaign workflow tables.

Revision ID: 001
Revises:
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    conn = op.get_bind()
    insp = sa.inspect(conn)
    existing = insp.get_table_names()

    if "seo_campaigns" in existing:
        return  # Already applied (e.g. from create_all)

    if "brands" not in existing:
        op.create_table(
            "brands",
            sa.Column("id", sa.Uuid(), nullable=False),
            sa.Column("user_id", sa.Uuid(), nullable=False),
            sa.Column("name", sa.String(255), nullable=False),
            sa.Column("website_url", sa.String(1024), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.text("now()")),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_brands_user_id", "brands", ["user_id"], unique=False)

    op.create_table(
        "seo_campaigns",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("brand_id", sa.Uuid(), nullable=True),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("website_url", sa.String(1024), nullable=True),
        sa.Column("business_description", sa.Text(), nullable=False),
        sa.Column("number_of_articles", sa.Integer(), nullable=False),
        sa.Column("article_length", sa.String(64), nullable=True),
        sa.Column("article_type", sa.String(64), nullable=True),
        sa.Column("language", sa.String(64), nullable=True),
        sa.Column("target_country", sa.String(128), nullable=True),
        sa.Column("extracted_keywords", sa.JSON(), nullable=True),
        sa.Column("generated_search_keywords", sa.JSON(), nullable=True),
        sa.Column("formatted_search_location", sa.String(8), nullable=True),
        sa.Column("organic_keywords", sa.JSON(), nullable=True),
        sa.Column("style_analysis", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(20), nullable=True, server_default="in_progress"),
        sa.Column("current_step", sa.String(32), nullable=True, server_default="form_data_saved"),
        sa.Column("progress", sa.Integer(), nullable=True, server_default="0"),
        sa.Column("lock_version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(), nullable=True, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["brand_id"], ["brands.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_seo_campaigns_user_id", "seo_campaigns", ["user_id"], unique=False)
    op.create_index("ix_seo_campaigns_brand_id", "seo_campaigns", ["brand_id"], unique=False)
    op.create_index("ix_seo_campaigns_current_step", "seo_campaigns", ["current_step"], unique=False)

    if "google_search_results" not in existing:
        op.create_table(
            "google_search_results",
            sa.Column("id", sa.Uuid(), nullable=False),
            sa.Column("user_id", sa.Uuid(), nullable=False),
            sa.Column("search_run_id", sa.String(255), nullable=True),
            sa.Column("search_session_id", sa.String(255), nullable=True),
            sa.Column("keyword", sa.String(512), nullable=True),
            sa.Column("url", sa.String(2048), nullable=True),
            sa.Column("domain", sa.String(255), nullable=True),
            sa.Column("title", sa.Text(), nullable=True),
            sa.Column("position", sa.Integer(), nullable=True),
            sa.Column("is_organic", sa.Boolean(), nullable=True),
            sa.Column("scraped_at", sa.DateTime(), nullable=True, server_default=sa.text("now()")),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_google_search_results_user_id", "google_search_results", ["user_id"], unique=False)
        op.create_index("ix_google_search_results_search_run_id", "google_search_results", ["search_run_id"], unique=False)
        op.create_index("ix_google_search_results_scraped_at", "google_search_results", ["scraped_at"], unique=False)

    op.create_table(
        "articles",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("campaign_id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("brand_id", sa.Uuid(), nullable=True),
        sa.Column("title", sa.String(512), nullable=False),
        sa.Column("primary_keyword", sa.String(255), nullable=True),
        sa.Column("keywords", sa.JSON(), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("meta_description", sa.String(255), nullable=True),
        sa.Column("featured_image_url", sa.Text(), nullable=True),
        sa.Column("word_count", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(20), nullable=True, server_default="draft"),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["campaign_id"], ["seo_campaigns.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_articles_campaign_id", "articles", ["campaign_id"], unique=False)
    op.create_index("ix_articles_user_id", "articles", ["user_id"], unique=False)

    op.create_table(
        "api_token_usage",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=True),
        sa.Column("brand_id", sa.Uuid(), nullable=True),
        sa.Column("service_name", sa.String(64), nullable=False),
        sa.Column("model_name", sa.String(128), nullable=False),
        sa.Column("prompt_tokens", sa.Integer(), nullable=True, server_default="0"),
        sa.Column("completion_tokens", sa.Integer(), nullable=True, server_default="0"),
        sa.Column("total_tokens", sa.Integer(), nullable=True, server_default="0"),
        sa.Column("cost_usd", sa.Float(), nullable=True, server_default="0"),
        sa.Column("request_data", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_api_token_usage_user_id", "api_token_usage", ["user_id"], unique=False)
    op.create_index("ix_api_token_usage_created_at", "api_token_usage", ["created_at"], unique=False)

    if "app_settings" not in existing:
        op.create_table(
            "app_settings",
            sa.Column("id", sa.Uuid(), nullable=False),
            sa.Column("default_llm_id", sa.String(128), nullable=True),
            sa.Column("openai_api_key", sa.Text(), nullable=True),
            sa.Column("anthropic_api_key", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.text("now()")),
            sa.Column("updated_at", sa.DateTime(), nullable=True, server_default=sa.text("now()")),
            sa.PrimaryKeyConstraint("id"),
        )


def downgrade() -> None:
    op.drop_table("api_token_usage")
    op.drop_table("articles")
    op.drop_table("seo_campaigns")
