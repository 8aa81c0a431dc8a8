"""bundle budget: min/max price and price range tier"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0002_bundle_price_range"
down_revision = "0001_gift_bundles"
branch_labels = None
depends_on = None


def upgrade() -> None:
    with op.batch_alter_table("gift_bundles") as batch_op:
        batch_op.add_column(sa.Column("min_price", sa.Integer(), nullable=True))
        batch_op.add_column(sa.Column("max_price", sa.Integer(), nullable=True))
        batch_op.add_column(sa.Column("price_range", sa.String(length=20), nullable=True))
    op.create_index(op.f("ix_gift_bundles_price_range"), "gift_bundles", ["price_range"])
    op.create_index(op.f("ix_gift_bundles_occasion"), "gift_bundles", ["occasion"])


def downgrade() -> None:
    op.drop_index(op.f("ix_gift_bundles_occasion"), table_name="gift_bundles")
    op.drop_index(op.f("ix_gift_bundles_price_range"), table_name="gift_bundles")
    with op.batch_alter_table("gift_bundles") as batch_op:
        batch_op.drop_column("price_range")
        batch_op.drop_column("max_price")
        batch_op.drop_column("min_price")
