"""init organizations, users, audit log, sequences and inquiry tables

Revision ID: 20260101_0001_init_inquiry_tables
Revises:
Create Date: 2026-01-01
"""

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "20260101_0001_init_inquiry_tables"
down_revision = None
branch_labels = None
depends_on = None

role_name = sa.Enum("customer", "operator", "admin", name="rolename", native_enum=False)
inquiry_status = sa.Enum(
    "PENDING",
    "RESPONDED",
    "NEGOTIATING",
    "ACCEPTED",
    "REJECTED",
    "EXPIRED",
    name="inquirystatus",
    native_enum=False,
)
inquiry_message_type = sa.Enum(
    "MESSAGE",
    "QUOTE",
    "COUNTER_OFFER",
    "ACCEPTANCE",
    "REJECTION",
    "SYSTEM",
    name="inquirymessagetype",
    native_enum=False,
)


def upgrade() -> None:
    op.create_table(
        "organizations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("code", sa.String(length=3), nullable=False, unique=True),
        sa.Column("type", sa.String(length=32), nullable=True),
        sa.Column("country", sa.String(length=64), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "roles",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", role_name, nullable=False, unique=True),
        sa.Column("description", sa.String(length=255), nullable=True),
    )
    op.bulk_insert(
        sa.table("roles", sa.column("name", sa.String), sa.column("description", sa.String)),
        [
            {"name": "customer", "description": "customer"},
            {"name": "operator", "description": "operator"},
            {"name": "admin", "description": "admin"},
        ],
    )

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("role_id", sa.Integer(), sa.ForeignKey("roles.id"), nullable=False),
        sa.Column(
            "organization_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=True
        ),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_organization_id", "users", ["organization_id"])

    op.create_table(
        "document_yearly_sequences",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("doc_type", sa.String(length=16), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("last_seq", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("doc_type", "year", name="uq_doc_seq_doc_type_year"),
    )

    op.create_table(
        "marketplace_products",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "organization_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False
        ),
        sa.Column("listing_title", sa.String(length=255), nullable=False),
        sa.Column("price_currency", sa.String(length=3), nullable=False, server_default="USD"),
        sa.Column("view_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("inquiry_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index(
        "ix_marketplace_products_organization_id", "marketplace_products", ["organization_id"]
    )

    op.create_table(
        "buyer_requirements",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "organization_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False
        ),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("budget_currency", sa.String(length=3), nullable=False, server_default="USD"),
        sa.Column("view_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("quote_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index(
        "ix_buyer_requirements_organization_id", "buyer_requirements", ["organization_id"]
    )

    op.create_table(
        "match_results",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "marketplace_product_id",
            sa.Integer(),
            sa.ForeignKey("marketplace_products.id"),
            nullable=True,
        ),
        sa.Column(
            "buyer_requirement_id",
            sa.Integer(),
            sa.ForeignKey("buyer_requirements.id"),
            nullable=True,
        ),
        sa.Column(
            "supplier_org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=True
        ),
        sa.Column("buyer_org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=True),
        sa.Column("total_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "inquiries",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("inquiry_code", sa.String(length=32), nullable=False, unique=True),
        sa.Column(
            "marketplace_product_id",
            sa.Integer(),
            sa.ForeignKey("marketplace_products.id"),
            nullable=True,
        ),
        sa.Column(
            "buyer_requirement_id",
            sa.Integer(),
            sa.ForeignKey("buyer_requirements.id"),
            nullable=True,
        ),
        sa.Column(
            "match_result_id", sa.Integer(), sa.ForeignKey("match_results.id"), nullable=True
        ),
        sa.Column(
            "buyer_org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False
        ),
        sa.Column(
            "supplier_org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False
        ),
        sa.Column(
            "initiated_by_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False
        ),
        sa.Column("subject", sa.String(length=200), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=True),
        sa.Column("target_price", sa.Float(), nullable=True),
        sa.Column("target_currency", sa.String(length=3), nullable=False, server_default="USD"),
        sa.Column("required_delivery_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", inquiry_status, nullable=False, server_default="PENDING"),
        sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("close_reason", sa.String(length=500), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
    )
    op.create_index("ix_inquiries_status", "inquiries", ["status"])
    op.create_index("ix_inquiries_buyer_org_status", "inquiries", ["buyer_org_id", "status"])
    op.create_index(
        "ix_inquiries_supplier_org_status", "inquiries", ["supplier_org_id", "status"]
    )

    op.create_table(
        "inquiry_messages",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "inquiry_id",
            sa.Integer(),
            sa.ForeignKey("inquiries.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("sender_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column(
            "sender_org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False
        ),
        sa.Column(
            "message_type", inquiry_message_type, nullable=False, server_default="MESSAGE"
        ),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("quote_price", sa.Float(), nullable=True),
        sa.Column("quote_currency", sa.String(length=3), nullable=True),
        sa.Column("quote_valid_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("quoted_lead_time_days", sa.Integer(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
    )
    op.create_index(
        "ix_inquiry_messages_sender_user_id", "inquiry_messages", ["sender_user_id"]
    )
    op.create_index(
        "ix_inquiry_messages_inquiry_created", "inquiry_messages", ["inquiry_id", "created_at"]
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("action", sa.String(length=128), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column(
            "inquiry_id",
            sa.Integer(),
            sa.ForeignKey("inquiries.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("payload_json", sa.Text(), nullable=True),
        sa.Column("request_id", sa.String(length=64), nullable=True),
        sa.Column("ip", sa.String(length=64), nullable=True),
        sa.Column("user_agent", sa.String(length=256), nullable=True),
        sa.Column("idempotency_key", sa.String(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_user_id", "audit_logs", ["user_id"])
    op.create_index("ix_audit_logs_inquiry_id", "audit_logs", ["inquiry_id"])
    op.create_index("ix_audit_logs_request_id", "audit_logs", ["request_id"])
    op.create_index(
        "ix_audit_logs_idempotency_key", "audit_logs", ["idempotency_key"], unique=True
    )


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_index("ix_inquiry_messages_inquiry_created", table_name="inquiry_messages")
    op.drop_index("ix_inquiry_messages_sender_user_id", table_name="inquiry_messages")
    op.drop_table("inquiry_messages")
    op.drop_index("ix_inquiries_supplier_org_status", table_name="inquiries")
    op.drop_index("ix_inquiries_buyer_org_status", table_name="inquiries")
    op.drop_index("ix_inquiries_status", table_name="inquiries")
    op.drop_table("inquiries")
    op.drop_table("match_results")
    op.drop_table("buyer_requirements")
    op.drop_table("marketplace_products")
    op.drop_table("document_yearly_sequences")
    op.drop_table("users")
    op.drop_table("roles")
    op.drop_table("organizations")
