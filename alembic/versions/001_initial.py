"""Throughput samples table

Revision ID: 001
Revises:
Create Date: 2026-10-17

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "throughput_samples",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("server_name", sa.String(64), nullable=False),
        sa.Column("client_name", sa.String(255), nullable=False),
        sa.Column("ip_addr", sa.String(45), nullable=False),
        sa.Column("bytes_in_per_sec", sa.Float(), nullable=False, server_default="0"),
        sa.Column("bytes_out_per_sec", sa.Float(), nullable=False, server_default="0"),
        sa.Column("measured_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.CheckConstraint("bytes_in_per_sec >= 0", name="ck_throughput_samples_in_nonneg"),
        sa.CheckConstraint("bytes_out_per_sec >= 0", name="ck_throughput_samples_out_nonneg"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_throughput_samples_server_name"), "throughput_samples", ["server_name"], unique=False)
    op.create_index(op.f("ix_throughput_samples_measured_at"), "throughput_samples", ["measured_at"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_throughput_samples_measured_at"), table_name="throughput_samples")
    op.drop_index(op.f("ix_throughput_samples_server_name"), table_name="throughput_samples")
    op.drop_table("throughput_samples")
