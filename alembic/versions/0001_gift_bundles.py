"""gift bundles, products and click log"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_gift_bundles"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "gift_bundles",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("slug", sa.String(length=100), nullable=False),
        sa.Column("recipient_description", sa.Text(), nullable=False),
        sa.Column("occasion", sa.String(length=500), nullable=True),
        sa.Column("humor_style", sa.String(length=50), nullable=False),
        sa.Column("seo_title", sa.String(length=60), nullable=True),
        sa.Column("seo_description", sa.String(length=160), nullable=True),
        sa.Column("seo_keywords", sa.String(length=500), nullable=True),
        sa.Column("recipient_keywords", sa.Text(), nullable=True),
        sa.Column("view_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("click_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("share_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_gift_bundles")),
        sa.UniqueConstraint("slug", name=op.f("uq_gift_bundles_slug")),
    )
    op.create_index(op.f("ix_gift_bundles_humor_style"), "gift_bundles", ["humor_style"])
    op.create_index(op.f("ix_gift_bundles_view_count"), "gift_bundles", ["view_count"])
    op.create_index(op.f("ix_gift_bundles_created_at"), "gift_bundles", ["created_at"])

    op.create_table(
        "bundle_concepts",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("bundle_id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("tagline", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(
            ["bundle_id"],
            ["gift_bundles.id"],
            name=op.f("fk_bundle_concepts_bundle_id_gift_bundles"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_bundle_concepts")),
    )
    op.create_index(op.f("ix_bundle_concepts_bundle_id"), "bundle_concepts", ["bundle_id"])

    op.create_table(
        "products",
        sa.Column("id", sa.String(length=255), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=True),
        sa.Column("currency", sa.String(length=3), server_default="USD", nullable=False),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("source", sa.String(length=20), nullable=False),
        sa.Column("source_id", sa.String(length=255), nullable=True),
        sa.Column("click_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("impression_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("last_clicked_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_products")),
    )
    op.create_index(op.f("ix_products_source"), "products", ["source"])
    op.create_index(op.f("ix_products_created_at"), "products", ["created_at"])

    op.create_table(
        "bundle_products",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("bundle_id", sa.Uuid(), nullable=False),
        sa.Column("concept_id", sa.Uuid(), nullable=True),
        sa.Column("product_id", sa.String(length=255), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(
            ["bundle_id"],
            ["gift_bundles.id"],
            name=op.f("fk_bundle_products_bundle_id_gift_bundles"),
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["concept_id"],
            ["bundle_concepts.id"],
            name=op.f("fk_bundle_products_concept_id_bundle_concepts"),
            ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(
            ["product_id"],
            ["products.id"],
            name=op.f("fk_bundle_products_product_id_products"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_bundle_products")),
    )
    op.create_index(op.f("ix_bundle_products_bundle_id"), "bundle_products", ["bundle_id"])
    op.create_index(op.f("ix_bundle_products_product_id"), "bundle_products", ["product_id"])

    op.create_table(
        "product_clicks",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("product_id", sa.String(length=255), nullable=False),
        sa.Column("source", sa.String(length=50), nullable=False),
        sa.Column("bundle_slug", sa.String(length=100), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("referer", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_product_clicks")),
    )
    op.create_index(op.f("ix_product_clicks_product_id"), "product_clicks", ["product_id"])
    op.create_index(op.f("ix_product_clicks_bundle_slug"), "product_clicks", ["bundle_slug"])
    op.create_index(op.f("ix_product_clicks_created_at"), "product_clicks", ["created_at"])


def downgrade() -> None:
    op.drop_table("product_clicks")
    op.drop_table("bundle_products")
    op.drop_table("products")
    op.drop_table("bundle_concepts")
    op.drop_table("gift_bundles")
