"""conversations / messages 테이블 + RLS 정책

Revision ID: 0001
Revises:
"""
from alembic import op
import sqlalchemy as sa
from geminichat.core.config import settings

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

# 요청 트랜잭션마다 ScopedStore가 set_config(db_claims_setting, ...)로 주입
CALLER_SUB = f"(current_setting('{settings.db_claims_setting}', true)::json ->> 'sub')"


def upgrade():
    op.create_table(
        "conversations",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_conversations_user_id", "conversations", ["user_id"])
    op.create_index("ix_conversations_created_at", "conversations", ["created_at"])

    op.create_table(
        "messages",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "conversation_id",
            sa.String(36),
            sa.ForeignKey("conversations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("message_type", sa.String(20), nullable=False, server_default="text"),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("role IN ('user', 'assistant')", name="ck_messages_role"),
        sa.CheckConstraint(
            "message_type IN ('text', 'image', 'image_prompt', 'image_query')",
            name="ck_messages_message_type",
        ),
    )
    op.create_index("ix_messages_conversation_id", "messages", ["conversation_id"])
    op.create_index("ix_messages_user_id", "messages", ["user_id"])
    op.create_index("ix_messages_created_at", "messages", ["created_at"])

    if op.get_bind().dialect.name != "postgresql":
        return

    # Row Level Security: 토큰의 sub와 user_id가 같은 행만 보이고 쓸 수 있음
    op.execute("ALTER TABLE conversations ENABLE ROW LEVEL SECURITY")
    op.execute("ALTER TABLE messages ENABLE ROW LEVEL SECURITY")

    op.execute(
        f"CREATE POLICY conversations_owner ON conversations "
        f"USING ({CALLER_SUB} = user_id) WITH CHECK ({CALLER_SUB} = user_id)"
    )
    op.execute(f"CREATE POLICY messages_owner_read ON messages FOR SELECT USING ({CALLER_SUB} = user_id)")
    op.execute(f"CREATE POLICY messages_owner_delete ON messages FOR DELETE USING ({CALLER_SUB} = user_id)")
    # 메시지는 본인 대화에만 추가 가능 (conversations도 RLS로 걸러지므로 남의 대화는 안 보임)
    op.execute(
        f"CREATE POLICY messages_owner_insert ON messages FOR INSERT WITH CHECK ("
        f"{CALLER_SUB} = user_id AND EXISTS ("
        f"SELECT 1 FROM conversations c WHERE c.id = conversation_id AND c.user_id = messages.user_id))"
    )


def downgrade():
    op.drop_table("messages")
    op.drop_table("conversations")
