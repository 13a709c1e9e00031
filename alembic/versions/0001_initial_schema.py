"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-18 09:00:00

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("user_id", sa.String(36), primary_key=True),
        sa.Column("username", sa.String(100), nullable=False, unique=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_users_user_id", "users", ["user_id"])
    op.create_index("ix_users_role", "users", ["role"])

    op.create_table(
        "trades",
        sa.Column("trade_id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.user_id"), nullable=False),
        sa.Column("counterparty_id", sa.String(36), sa.ForeignKey("users.user_id"), nullable=True),
        sa.Column("amount", sa.DECIMAL(14, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("dispute_id", sa.String(36), nullable=True),
        sa.Column("resolution", sa.String(20), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    for column in ("trade_id", "user_id", "counterparty_id", "created_at", "completed_at"):
        op.create_index(f"ix_trades_{column}", "trades", [column])

    op.create_table(
        "monitoring_rules",
        sa.Column("rule_id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("severity", sa.String(10), nullable=False),
        sa.Column("enabled", sa.Boolean(), nullable=False),
        sa.Column("time_window_minutes", sa.Integer(), nullable=False),
        sa.Column("max_transactions", sa.Integer(), nullable=True),
        sa.Column("min_amount", sa.DECIMAL(14, 2), nullable=True),
        sa.Column("max_counterparties", sa.Integer(), nullable=True),
        sa.Column("pattern_type", sa.String(30), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
    )
    op.create_index("ix_monitoring_rules_rule_id", "monitoring_rules", ["rule_id"])

    op.create_table(
        "transaction_alerts",
        sa.Column("alert_id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("rule_id", sa.String(64), nullable=False),
        sa.Column("rule_name", sa.String(100), nullable=False),
        sa.Column("severity", sa.String(10), nullable=False),
        sa.Column("transactions", sa.JSON(), nullable=False),
        sa.Column("detected_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("open_key", sa.String(128), nullable=True, unique=True),
        sa.Column("resolution", sa.Text(), nullable=True),
        sa.Column("reviewed_by", sa.String(36), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
    )
    for column in ("alert_id", "user_id", "rule_id"):
        op.create_index(f"ix_transaction_alerts_{column}", "transaction_alerts", [column])
    op.create_index("idx_alert_user_status", "transaction_alerts", ["user_id", "status"])
    op.create_index("idx_alert_user_rule_status", "transaction_alerts", ["user_id", "rule_id", "status"])

    op.create_table(
        "disputes",
        sa.Column("dispute_id", sa.String(36), primary_key=True),
        sa.Column("ticket_id", sa.String(36), nullable=False),
        sa.Column("open_ticket_id", sa.String(36), nullable=True, unique=True),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("counterparty_id", sa.String(36), nullable=False),
        sa.Column("reason", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("priority", sa.String(10), nullable=False),
        sa.Column("flags", sa.JSON(), nullable=False),
        sa.Column("escalated_to_arbitration", sa.Boolean(), nullable=False),
        sa.Column("escalated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("trade_sync_pending", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
    )
    for column in ("dispute_id", "ticket_id", "user_id", "counterparty_id", "status", "trade_sync_pending"):
        op.create_index(f"ix_disputes_{column}", "disputes", [column])

    op.create_table(
        "dispute_evidence",
        sa.Column("seq", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("evidence_id", sa.String(36), nullable=False, unique=True),
        sa.Column("dispute_id", sa.String(36), sa.ForeignKey("disputes.dispute_id"), nullable=False),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("type", sa.String(10), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_dispute_evidence_dispute_id", "dispute_evidence", ["dispute_id"])

    op.create_table(
        "dispute_comments",
        sa.Column("seq", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("comment_id", sa.String(36), nullable=False, unique=True),
        sa.Column("dispute_id", sa.String(36), sa.ForeignKey("disputes.dispute_id"), nullable=False),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("role", sa.String(12), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("is_private", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_dispute_comments_dispute_id", "dispute_comments", ["dispute_id"])

    op.create_table(
        "dispute_timeline",
        sa.Column("seq", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("dispute_id", sa.String(36), sa.ForeignKey("disputes.dispute_id"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("actor_id", sa.String(36), nullable=True),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_dispute_timeline_dispute_id", "dispute_timeline", ["dispute_id"])

    op.create_table(
        "dispute_resolutions",
        sa.Column("resolution_id", sa.String(36), primary_key=True),
        sa.Column("dispute_id", sa.String(36), sa.ForeignKey("disputes.dispute_id"), nullable=False, unique=True),
        sa.Column("decision", sa.String(10), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("resolved_by", sa.String(36), nullable=False),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("buyer_refund_amount", sa.DECIMAL(14, 2), nullable=True),
        sa.Column("seller_payment_amount", sa.DECIMAL(14, 2), nullable=True),
        sa.Column("additional_notes", sa.Text(), nullable=True),
    )

    op.create_table(
        "audit_log",
        sa.Column("audit_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("operation", sa.String(50), nullable=False),
        sa.Column("resource_type", sa.String(30), nullable=False),
        sa.Column("resource_id", sa.String(64), nullable=False),
        sa.Column("actor_id", sa.String(36), nullable=True),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("recorded_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_audit_log_operation", "audit_log", ["operation"])
    op.create_index("ix_audit_log_resource_id", "audit_log", ["resource_id"])


def downgrade() -> None:
    for table in (
        "audit_log",
        "dispute_resolutions",
        "dispute_timeline",
        "dispute_comments",
        "dispute_evidence",
        "disputes",
        "transaction_alerts",
        "monitoring_rules",
        "trades",
        "users",
    ):
        op.drop_table(table)
