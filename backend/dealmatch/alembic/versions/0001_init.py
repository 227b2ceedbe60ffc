"""init schema: tenants, users, listings, crm deals and shortlist

Revision ID: 0001_init
Revises:
Create Date: 2026-10-12
"""
from alembic import op
import sqlalchemy as sa


revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "tenants",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("slug", sa.String(length=80), nullable=False),
        sa.Column("name", sa.String(length=160), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_tenants_slug", "tenants", ["slug"], unique=True)

    op.create_table(
        "app_users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=200), nullable=False),
        sa.Column("display_name", sa.String(length=160), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_app_users_email", "app_users", ["email"], unique=True)

    op.create_table(
        "tenant_memberships",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False, server_default="agent"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("tenant_id", "user_id", name="uq_tenant_memberships_tenant_user"),
    )
    op.create_index("ix_tenant_memberships_tenant_id", "tenant_memberships", ["tenant_id"])
    op.create_index("ix_tenant_memberships_user_id", "tenant_memberships", ["user_id"])

    op.create_table(
        "properties",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("internal_reference", sa.String(length=40), nullable=True),
        sa.Column("property_type", sa.String(length=40), nullable=False, server_default="APARTMENT"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="DRAFT"),
        sa.Column("price", sa.Float(), nullable=True),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="XOF"),
        sa.Column("location_zone", sa.String(length=120), nullable=True),
        sa.Column("city", sa.String(length=120), nullable=True),
        sa.Column("region", sa.String(length=120), nullable=True),
        sa.Column("country", sa.String(length=2), nullable=False, server_default="CI"),
        sa.Column("address", sa.String(length=255), nullable=True),
        sa.Column("surface_area", sa.Float(), nullable=True),
        sa.Column("rooms", sa.Integer(), nullable=True),
        sa.Column("bedrooms", sa.Integer(), nullable=True),
        sa.Column("type_specific_data", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_properties_tenant_id", "properties", ["tenant_id"])
    op.create_index("ix_properties_tenant_status", "properties", ["tenant_id", "status"])
    op.create_index("ix_properties_tenant_zone_type", "properties", ["tenant_id", "location_zone", "property_type"])

    op.create_table(
        "crm_contacts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("first_name", sa.String(length=120), nullable=False),
        sa.Column("last_name", sa.String(length=120), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_crm_contacts_tenant_id", "crm_contacts", ["tenant_id"])

    op.create_table(
        "crm_deals",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("contact_id", sa.Integer(), sa.ForeignKey("crm_contacts.id", ondelete="SET NULL"), nullable=True),
        sa.Column("type", sa.String(length=20), nullable=False),
        sa.Column("stage", sa.String(length=20), nullable=False, server_default="NEW"),
        sa.Column("budget_min", sa.Float(), nullable=True),
        sa.Column("budget_max", sa.Float(), nullable=True),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="XOF"),
        sa.Column("location_zone", sa.String(length=120), nullable=True),
        sa.Column("criteria_json", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_crm_deals_tenant_id", "crm_deals", ["tenant_id"])

    op.create_table(
        "crm_deal_properties",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("deal_id", sa.Integer(), sa.ForeignKey("crm_deals.id", ondelete="CASCADE"), nullable=False),
        sa.Column("property_id", sa.Integer(), sa.ForeignKey("properties.id", ondelete="CASCADE"), nullable=False),
        sa.Column("match_score", sa.Integer(), nullable=True),
        sa.Column("match_explanation_json", sa.Text(), nullable=True),
        sa.Column(
            "source_owner_contact_id",
            sa.Integer(),
            sa.ForeignKey("crm_contacts.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="SHORTLISTED"),
        sa.Column("added_by_user_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=True),
        sa.Column("added_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint(
            "tenant_id", "deal_id", "property_id", name="uq_crm_deal_properties_tenant_deal_property"
        ),
    )
    op.create_index("ix_crm_deal_properties_tenant_id", "crm_deal_properties", ["tenant_id"])
    op.create_index("ix_crm_deal_properties_deal_id", "crm_deal_properties", ["deal_id"])


def downgrade():
    op.drop_index("ix_crm_deal_properties_deal_id", table_name="crm_deal_properties")
    op.drop_index("ix_crm_deal_properties_tenant_id", table_name="crm_deal_properties")
    op.drop_table("crm_deal_properties")

    op.drop_index("ix_crm_deals_tenant_id", table_name="crm_deals")
    op.drop_table("crm_deals")

    op.drop_index("ix_crm_contacts_tenant_id", table_name="crm_contacts")
    op.drop_table("crm_contacts")

    op.drop_index("ix_properties_tenant_zone_type", table_name="properties")
    op.drop_index("ix_properties_tenant_status", table_name="properties")
    op.drop_index("ix_properties_tenant_id", table_name="properties")
    op.drop_table("properties")

    op.drop_index("ix_tenant_memberships_user_id", table_name="tenant_memberships")
    op.drop_index("ix_tenant_memberships_tenant_id", table_name="tenant_memberships")
    op.drop_table("tenant_memberships")

    op.drop_index("ix_app_users_email", table_name="app_users")
    op.drop_table("app_users")

    op.drop_index("ix_tenants_slug", table_name="tenants")
    op.drop_table("tenants")
