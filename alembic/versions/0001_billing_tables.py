"""billing tables: bills, unit charges, attachments, audits, notifications and config

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa


revision = "a1b2c3d4e5f6"
down_revision = None
branch_labels = None
depends_on = None


def _audit_columns():
    return [
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("create_date", sa.DateTime(), nullable=False),
        sa.Column("create_by", sa.Integer(), nullable=True),
        sa.Column("update_date", sa.DateTime(), nullable=True),
        sa.Column("update_by", sa.Integer(), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "bill_type_information",
        *_audit_columns(),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("status", sa.SmallInteger(), nullable=False, server_default="1"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_bill_type_information_status"), "bill_type_information", ["status"], unique=False)

    op.create_table(
        "bill_information",
        *_audit_columns(),
        sa.Column("customer_id", sa.String(64), nullable=False),
        sa.Column("bill_no", sa.String(32), nullable=False),
        sa.Column("upload_key", sa.String(255), nullable=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("bill_type_id", sa.Integer(), nullable=True),
        sa.Column("detail", sa.Text(), nullable=True),
        sa.Column("expire_date", sa.DateTime(), nullable=False),
        sa.Column("send_date", sa.DateTime(), nullable=True),
        sa.Column("remark", sa.Text(), nullable=True),
        sa.Column("status", sa.SmallInteger(), nullable=False, server_default="0"),
        sa.Column("delete_date", sa.DateTime(), nullable=True),
        sa.Column("delete_by", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["bill_type_id"], ["bill_type_information.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_bill_information_customer_id"), "bill_information", ["customer_id"], unique=False)
    op.create_index(op.f("ix_bill_information_upload_key"), "bill_information", ["upload_key"], unique=False)
    op.create_index(op.f("ix_bill_information_status"), "bill_information", ["status"], unique=False)
    op.create_index(
        "ux_bill_information_customer_bill_no", "bill_information", ["customer_id", "bill_no"],
        unique=True, postgresql_where=sa.text("status <> 2"),
    )

    op.create_table(
        "bill_room_information",
        *_audit_columns(),
        sa.Column("customer_id", sa.String(64), nullable=False),
        sa.Column("bill_id", sa.Integer(), nullable=False),
        sa.Column("bill_no", sa.String(32), nullable=False),
        sa.Column("house_no", sa.String(64), nullable=False),
        sa.Column("member_name", sa.String(255), nullable=False),
        sa.Column("total_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("remark", sa.Text(), nullable=True),
        sa.Column("status", sa.SmallInteger(), nullable=False, server_default="0"),
        sa.Column("delete_date", sa.DateTime(), nullable=True),
        sa.Column("delete_by", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["bill_id"], ["bill_information.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_bill_room_information_customer_id"), "bill_room_information", ["customer_id"], unique=False)
    op.create_index(op.f("ix_bill_room_information_bill_id"), "bill_room_information", ["bill_id"], unique=False)
    op.create_index(op.f("ix_bill_room_information_status"), "bill_room_information", ["status"], unique=False)
    op.create_index(
        "ix_bill_room_information_customer_house_no", "bill_room_information", ["customer_id", "house_no"],
        unique=False,
    )
    op.create_index(
        "ux_bill_room_information_customer_bill_no", "bill_room_information", ["customer_id", "bill_no"],
        unique=True, postgresql_where=sa.text("status <> 2"),
    )

    op.create_table(
        "bill_attachment",
        *_audit_columns(),
        sa.Column("upload_key", sa.String(255), nullable=False),
        sa.Column("file_name", sa.String(255), nullable=False),
        sa.Column("file_path", sa.Text(), nullable=False),
        sa.Column("file_ext", sa.String(16), nullable=False),
        sa.Column("file_size", sa.BigInteger(), nullable=True),
        sa.Column("status", sa.SmallInteger(), nullable=False, server_default="1"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_bill_attachment_upload_key"), "bill_attachment", ["upload_key"], unique=False)
    op.create_index(op.f("ix_bill_attachment_status"), "bill_attachment", ["status"], unique=False)

    op.create_table(
        "bill_audit_information",
        *_audit_columns(),
        sa.Column("bill_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["bill_id"], ["bill_information.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_bill_audit_information_bill_id"), "bill_audit_information", ["bill_id"], unique=False)

    op.create_table(
        "bill_transaction_information",
        *_audit_columns(),
        sa.Column("customer_id", sa.String(64), nullable=False),
        sa.Column("bill_room_id", sa.Integer(), nullable=False),
        sa.Column("transaction_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("pay_date", sa.DateTime(), nullable=True),
        sa.Column("remark", sa.Text(), nullable=True),
        sa.Column("status", sa.SmallInteger(), nullable=False, server_default="1"),
        sa.ForeignKeyConstraint(["bill_room_id"], ["bill_room_information.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_bill_transaction_information_customer_id"), "bill_transaction_information", ["customer_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_bill_transaction_information_bill_room_id"), "bill_transaction_information", ["bill_room_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_bill_transaction_information_status"), "bill_transaction_information", ["status"], unique=False
    )

    op.create_table(
        "notification_audit_information",
        *_audit_columns(),
        sa.Column("customer_id", sa.String(64), nullable=False),
        sa.Column("table_name", sa.String(64), nullable=False),
        sa.Column("rows_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(255), nullable=True),
        sa.Column("detail", sa.Text(), nullable=True),
        sa.Column("topic", sa.String(64), nullable=True),
        sa.Column("type", sa.String(64), nullable=True),
        sa.Column("receiver", sa.String(255), nullable=True),
        sa.Column("remark", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_notification_audit_information_customer_id"), "notification_audit_information", ["customer_id"],
        unique=False,
    )
    op.create_index(
        "ix_notification_audit_target_latest", "notification_audit_information",
        ["table_name", "rows_id", "customer_id", "create_date"], unique=False,
    )

    op.create_table(
        "app_config",
        *_audit_columns(),
        sa.Column("config_key", sa.String(128), nullable=False),
        sa.Column("config_value", sa.Text(), nullable=False),
        sa.Column("data_type", sa.String(16), nullable=False, server_default="string"),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("config_key"),
    )

    op.create_table(
        "app_customer_config",
        *_audit_columns(),
        sa.Column("customer_id", sa.String(64), nullable=False),
        sa.Column("config_key", sa.String(128), nullable=False),
        sa.Column("config_value", sa.Text(), nullable=False),
        sa.Column("data_type", sa.String(16), nullable=False, server_default="string"),
        sa.Column("title", sa.String(255), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("icon", sa.Text(), nullable=True),
        sa.Column("background_color", sa.String(32), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_app_customer_config_customer_id"), "app_customer_config", ["customer_id"], unique=False)
    op.create_index(
        "ux_app_customer_config_customer_key", "app_customer_config", ["customer_id", "config_key"], unique=True
    )


def downgrade() -> None:
    op.drop_table("app_customer_config")
    op.drop_table("app_config")
    op.drop_table("notification_audit_information")
    op.drop_table("bill_transaction_information")
    op.drop_table("bill_audit_information")
    op.drop_table("bill_attachment")
    op.drop_table("bill_room_information")
    op.drop_table("bill_information")
    op.drop_table("bill_type_information")
