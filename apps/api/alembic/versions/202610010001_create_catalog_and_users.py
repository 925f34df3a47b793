"""create users and catalog tables

Revision ID: 202610010001
Revises:
Create Date: 2026-10-01 00:01:00
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


revision: str = "202610010001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=32), nullable=False, server_default="merchant"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )

    op.create_table(
        "catalog_product",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("category_id", sa.String(length=64), nullable=False),
        sa.Column("subcategory_ids", sa.JSON(), nullable=False),
        sa.Column("product_type_code", sa.String(length=64), nullable=False),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("attributes", sa.JSON(), nullable=False),
        sa.Column("base_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("gst_slab", sa.Integer(), nullable=False, server_default="18"),
        sa.Column("gst_mode", sa.String(length=16), nullable=False, server_default="EXCLUSIVE"),
        sa.Column("hsn", sa.String(length=32), nullable=False, server_default=""),
        sa.Column("design", sa.JSON(), nullable=False),
        sa.Column("shipping", sa.JSON(), nullable=False),
        sa.Column("gallery_images", sa.JSON(), nullable=False),
        sa.Column("details", sa.JSON(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("is_published", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_by", sa.String(length=128), nullable=True),
        sa.Column("legacy_product_id", sa.Uuid(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("legacy_product_id"),
    )
    op.create_index(
        "ix_catalog_product_listing",
        "catalog_product",
        ["category_id", "is_active", "is_published"],
        unique=False,
    )
    op.create_index("ix_catalog_product_created_by", "catalog_product", ["created_by"], unique=False)

    op.create_table(
        "catalog_product_variant",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("catalog_product_id", sa.Uuid(), nullable=False),
        sa.Column("size", sa.String(length=64), nullable=False),
        sa.Column("color", sa.String(length=64), nullable=False),
        sa.Column("color_hex", sa.String(length=16), nullable=True),
        sa.Column("sku_template", sa.String(length=128), nullable=False),
        sa.Column("base_price", sa.Numeric(12, 2), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("view_images", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["catalog_product_id"], ["catalog_product.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("catalog_product_id", "size", "color", name="uq_catalog_variant_axis"),
        sa.UniqueConstraint("catalog_product_id", "sku_template", name="uq_catalog_variant_sku"),
    )
    op.create_index(
        "ix_catalog_variant_product_active",
        "catalog_product_variant",
        ["catalog_product_id", "is_active"],
        unique=False,
    )

    op.create_table(
        "catalog_variant_option",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("category_id", sa.String(length=64), nullable=False),
        sa.Column("subcategory_id", sa.String(length=64), nullable=True),
        sa.Column("option_type", sa.String(length=16), nullable=False),
        sa.Column("value", sa.String(length=64), nullable=False),
        sa.Column("color_hex", sa.String(length=16), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("usage_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_by", sa.String(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "category_id",
            "subcategory_id",
            "option_type",
            "value",
            name="uq_catalog_variant_option_value",
        ),
    )
    op.create_index(
        "ix_catalog_variant_option_lookup",
        "catalog_variant_option",
        ["category_id", "option_type"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_catalog_variant_option_lookup", table_name="catalog_variant_option")
    op.drop_table("catalog_variant_option")
    op.drop_index("ix_catalog_variant_product_active", table_name="catalog_product_variant")
    op.drop_table("catalog_product_variant")
    op.drop_index("ix_catalog_product_created_by", table_name="catalog_product")
    op.drop_index("ix_catalog_product_listing", table_name="catalog_product")
    op.drop_table("catalog_product")
    op.drop_table("users")
