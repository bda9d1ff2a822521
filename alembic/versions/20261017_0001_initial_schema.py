"""Initial schema: users, challenges, notifications, scores, friendships

Revision ID: 0001
Revises:
Create Date: 2026-10-17

Challenges carry both scores, the shared question set and the winner on one
row, so every lifecycle transition is a single-row conditional UPDATE.
Notifications are an append-only inbox per recipient.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('username', sa.String(50), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(128), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('push_token', sa.String(255), nullable=True),
        sa.Column('push_subscription', sa.Text(), nullable=True),
        sa.Column('push_enabled', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_created_at', 'users', ['created_at'])

    op.create_table(
        'challenges',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('challenger_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('challenged_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('category', sa.String(100), nullable=False),
        sa.Column('difficulty', sa.String(20), nullable=False),
        sa.Column('challenger_score', sa.Integer(), nullable=True),
        sa.Column('challenged_score', sa.Integer(), nullable=True),
        sa.Column(
            'status',
            sa.Enum('INVITED', 'PENDING', 'COMPLETED', 'DECLINED', name='challengestatus'),
            nullable=False,
        ),
        sa.Column('winner_id', sa.String(36), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('questions_json', sa.Text(), nullable=True),
        sa.Column('accepted_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_challenges_challenger_status', 'challenges', ['challenger_id', 'status'])
    op.create_index('ix_challenges_challenged_status', 'challenges', ['challenged_id', 'status'])

    op.create_table(
        'notifications',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('recipient_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('from_user_id', sa.String(36), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('data', sa.Text(), nullable=False, server_default='{}'),
        sa.Column('message', sa.Text(), nullable=False, server_default=''),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_notifications_recipient_id', 'notifications', ['recipient_id'])
    op.create_index('ix_notifications_recipient_unread', 'notifications', ['recipient_id', 'is_read'])
    op.create_index('ix_notifications_recipient_created', 'notifications', ['recipient_id', 'created_at'])

    op.create_table(
        'scores',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('score', sa.Integer(), nullable=False),
        sa.Column('total_questions', sa.Integer(), nullable=False),
        sa.Column('category', sa.String(100), nullable=False),
        sa.Column('difficulty', sa.String(20), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_scores_category_score', 'scores', ['category', 'score'])
    op.create_index('ix_scores_user_created', 'scores', ['user_id', 'created_at'])

    op.create_table(
        'friendships',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('requester_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('addressee_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('status', sa.Enum('PENDING', 'ACCEPTED', name='friendshipstatus'), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('accepted_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('requester_id', 'addressee_id', name='uq_friendships_pair'),
    )
    op.create_index('ix_friendships_requester_id', 'friendships', ['requester_id'])
    op.create_index('ix_friendships_addressee_id', 'friendships', ['addressee_id'])


def downgrade() -> None:
    op.drop_table('friendships')
    op.drop_table('scores')
    op.drop_table('notifications')
    op.drop_table('challenges')
    op.drop_table('users')
