"""initial

Revision ID: 0001
Revises: 
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "agents",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("vapi_assistant_id", sa.String(length=128)),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_agents_user_id", "agents", ["user_id"])
    op.create_index("ix_agents_vapi_assistant_id", "agents", ["vapi_assistant_id"])

    op.create_table(
        "calls",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("vapi_call_id", sa.String(length=128)),
        sa.Column("agent_id", sa.Integer(), sa.ForeignKey("agents.id")),
        sa.Column("direction", sa.String(length=16), nullable=False),
        sa.Column("from_number", sa.String(length=64), nullable=False),
        sa.Column("to_number", sa.String(length=64), nullable=False),
        sa.Column("started_at", sa.DateTime(), nullable=False),
        sa.Column("duration", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("cost", sa.Float(), nullable=False, server_default="0"),
        sa.Column("outcome", sa.String(length=64)),
        sa.Column("ended_reason", sa.String(length=128)),
        sa.Column("recording_url", sa.String(length=1024)),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime()),
    )
    # vapi_call_id stays non-unique; duplicates are reconciled by the resolver
    op.create_index("ix_calls_vapi_call_id", "calls", ["vapi_call_id"])
    op.create_index("ix_calls_agent_id", "calls", ["agent_id"])
    op.create_index("ix_calls_started_at", "calls", ["started_at"])

    op.create_table(
        "webhook_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("type", sa.String(length=100), nullable=False),
        sa.Column("payload", sa.JSON()),
        sa.Column("processed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("error", sa.Text(), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_webhook_logs_created_at", "webhook_logs", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_webhook_logs_created_at", table_name="webhook_logs")
    op.drop_table("webhook_logs")
    op.drop_index("ix_calls_started_at", table_name="calls")
    op.drop_index("ix_calls_agent_id", table_name="calls")
    op.drop_index("ix_calls_vapi_call_id", table_name="calls")
    op.drop_table("calls")
    op.drop_index("ix_agents_vapi_assistant_id", table_name="agents")
    op.drop_index("ix_agents_user_id", table_name="agents")
    op.drop_table("agents")
