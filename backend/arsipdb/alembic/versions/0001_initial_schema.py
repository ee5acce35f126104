"""Initial schema: users, audit trail, inventory ledger, purchasing,
distribution, letters and archives.

Revision ID: 0001_initial_schema
Revises:
Create Date: 2025-03-03 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa

revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _enum(name: str, *values: str) -> sa.Enum:
    return sa.Enum(*values, name=name, native_enum=False)


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def _index(table: str, *columns: str) -> None:
    for column in columns:
        op.create_index(f"ix_{table}_{column}", table, [column])


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("username", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("role", _enum("user_role_enum", "ADMINISTRATOR", "STAFF"), nullable=False),
        sa.Column("status", _enum("user_status_enum", "ACTIVE", "INACTIVE"), nullable=False),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    _index("users", "role", "status")
    op.create_index("idx_users_role_status", "users", ["role", "status"])

    op.create_table(
        "audit_events",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("entity_type", sa.String(64), nullable=False),
        sa.Column("entity_id", sa.String(64), nullable=False),
        sa.Column("action", sa.String(64), nullable=False),
        sa.Column("actor_user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("before", sa.JSON(), nullable=True),
        sa.Column("after", sa.JSON(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
    )
    _index("audit_events", "id", "entity_type", "entity_id", "action", "actor_user_id", "occurred_at")
    op.create_index("ix_audit_events_entity", "audit_events", ["entity_type", "entity_id"])
    op.create_index("ix_audit_events_time_desc", "audit_events", [sa.text("occurred_at DESC")])
    op.create_index("ix_audit_events_action_time", "audit_events", ["action", "occurred_at"])

    op.create_table(
        "inventory_items",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("category", sa.String(128), nullable=False),
        sa.Column("unit", sa.String(32), nullable=False),
        sa.Column("stock", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("min_stock", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.CheckConstraint("stock >= 0", name="ck_inventory_items_stock_nonneg"),
        sa.CheckConstraint("min_stock >= 0", name="ck_inventory_items_min_stock_nonneg"),
    )
    _index("inventory_items", "id", "name", "category")
    op.create_index("ix_inventory_items_category_name", "inventory_items", ["category", "name"])

    op.create_table(
        "stock_transactions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("item_id", sa.String(36), sa.ForeignKey("inventory_items.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("type", _enum("stock_transaction_type_enum", "IN", "OUT"), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("quantity > 0", name="ck_stock_transactions_quantity_pos"),
    )
    _index("stock_transactions", "id", "item_id", "type", "user_id", "created_at")
    op.create_index("ix_stock_transactions_item_time", "stock_transactions", ["item_id", "created_at"])

    op.create_table(
        "purchase_requests",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("request_number", sa.String(32), nullable=False),
        sa.Column("item_name", sa.String(255), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit", sa.String(32), nullable=False),
        sa.Column("item_id", sa.String(36), sa.ForeignKey("inventory_items.id", ondelete="RESTRICT"), nullable=True),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column(
            "status",
            _enum("purchase_request_status_enum", "PENDING", "APPROVED", "REJECTED", "RECEIVED"),
            nullable=False,
        ),
        sa.Column("request_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("requested_by_id", sa.String(36), sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("reviewed_by_id", sa.String(36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("review_date", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_purchase_requests_request_number", "purchase_requests", ["request_number"], unique=True)
    _index("purchase_requests", "id", "item_id", "status", "requested_by_id", "reviewed_by_id", "created_at")
    op.create_index("ix_purchase_requests_status_created", "purchase_requests", ["status", "created_at"])

    op.create_table(
        "purchase_request_items",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "purchase_request_id",
            sa.String(36),
            sa.ForeignKey("purchase_requests.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("item_name", sa.String(255), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit", sa.String(32), nullable=False),
        sa.Column("item_id", sa.String(36), sa.ForeignKey("inventory_items.id", ondelete="RESTRICT"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("quantity >= 1", name="ck_purchase_request_items_quantity"),
    )
    _index("purchase_request_items", "id", "purchase_request_id", "item_id")

    op.create_table(
        "receptions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "purchase_request_id",
            sa.String(36),
            sa.ForeignKey("purchase_requests.id", ondelete="RESTRICT"),
            nullable=True,
        ),
        sa.Column("item_id", sa.String(36), sa.ForeignKey("inventory_items.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("item_name", sa.String(255), nullable=False),
        sa.Column("requested_quantity", sa.Integer(), nullable=False),
        sa.Column("received_quantity", sa.Integer(), nullable=False),
        sa.Column("unit", sa.String(32), nullable=False),
        sa.Column("receipt_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", _enum("reception_status_enum", "COMPLETE", "PARTIAL", "DIFFERENT"), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("received_by_id", sa.String(36), sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("requested_quantity >= 1", name="ck_receptions_requested_quantity"),
        sa.CheckConstraint("received_quantity >= 0", name="ck_receptions_received_quantity"),
    )
    _index("receptions", "id", "purchase_request_id", "item_id", "status", "received_by_id", "created_at")
    op.create_index("ix_receptions_status_created", "receptions", ["status", "created_at"])

    op.create_table(
        "distributions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("note_number", sa.String(32), nullable=False),
        sa.Column("distributed_by_id", sa.String(36), sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("staff_name", sa.String(255), nullable=False),
        sa.Column("department", sa.String(128), nullable=False),
        sa.Column("distribution_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("purpose", sa.Text(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_distributions_note_number", "distributions", ["note_number"], unique=True)
    _index("distributions", "id", "distributed_by_id", "department", "distribution_date", "created_at")
    op.create_index("ix_distributions_department_date", "distributions", ["department", "distribution_date"])

    op.create_table(
        "distribution_items",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "distribution_id",
            sa.String(36),
            sa.ForeignKey("distributions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("item_name", sa.String(255), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit", sa.String(32), nullable=False),
        sa.Column("item_id", sa.String(36), sa.ForeignKey("inventory_items.id", ondelete="RESTRICT"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("quantity >= 1", name="ck_distribution_items_quantity"),
    )
    _index("distribution_items", "id", "distribution_id", "item_id")

    op.create_table(
        "letters",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("number", sa.String(128), nullable=False),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("subject", sa.String(512), nullable=False),
        sa.Column("type", _enum("letter_type", "INCOMING", "OUTGOING"), nullable=False),
        sa.Column("sender", sa.String(255), nullable=True),
        sa.Column("recipient", sa.String(255), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", _enum("letter_status", "RECEIVED", "SENT", "DRAFT"), nullable=False),
        sa.Column("has_document", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("document_path", sa.String(512), nullable=True),
        sa.Column("document_name", sa.String(255), nullable=True),
        sa.Column("document_size", sa.Integer(), nullable=True),
        sa.Column("document_type", sa.String(128), nullable=True),
        sa.Column("uploaded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by_id", sa.String(36), sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_letters_number", "letters", ["number"], unique=True)
    _index("letters", "id", "date", "type", "status", "has_document", "created_by_id", "created_at")
    op.create_index("ix_letters_type_date", "letters", ["type", "date"])

    op.create_table(
        "archives",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("code", sa.String(64), nullable=False),
        sa.Column("title", sa.String(512), nullable=False),
        sa.Column("category", sa.String(128), nullable=False),
        sa.Column("creation_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("retention_period", sa.Integer(), nullable=False),
        sa.Column(
            "status",
            _enum("archive_status", "UNDER_REVIEW", "PERMANENT", "SCHEDULED_DESTRUCTION"),
            nullable=False,
        ),
        sa.Column("location", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("destruction_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("archived_by_id", sa.String(36), sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("retention_period >= 1", name="ck_archives_retention_period"),
    )
    op.create_index("ix_archives_code", "archives", ["code"], unique=True)
    _index("archives", "id", "category", "status", "archived_by_id", "created_at")
    op.create_index("ix_archives_status_destruction", "archives", ["status", "destruction_date"])


def downgrade() -> None:
    for table in (
        "archives",
        "letters",
        "distribution_items",
        "distributions",
        "receptions",
        "purchase_request_items",
        "purchase_requests",
        "stock_transactions",
        "inventory_items",
        "audit_events",
        "users",
    ):
        op.drop_table(table)
