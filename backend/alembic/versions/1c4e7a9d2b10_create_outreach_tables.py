"""Create bankers, campaigns, seller companies, calls, messages and actions tables

Revision ID: 1c4e7a9d2b10
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '1c4e7a9d2b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'bankers',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_table(
        'campaigns',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('search_params', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_table(
        'seller_companies',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('industry', sa.String(), nullable=False),
        sa.Column('geography', sa.String(), nullable=True),
        sa.Column('website', sa.String(), nullable=True),
        sa.Column('phone_number', sa.String(), nullable=True),
        sa.Column('revenue', sa.Float(), nullable=True),
        sa.Column('ebitda', sa.Float(), nullable=True),
        sa.Column('headcount', sa.Integer(), nullable=True),
        sa.Column('estimated_deal_size', sa.Float(), nullable=True),
        sa.Column('likelihood_to_sell', sa.Integer(), nullable=True),
        sa.Column('deal_stage', sa.String(), nullable=True),
        sa.Column('campaign_id', sa.UUID(), nullable=True),
        sa.Column('owner_banker_id', sa.UUID(), nullable=False),
        sa.Column('last_contact_date', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['campaign_id'], ['campaigns.id']),
        sa.ForeignKeyConstraint(['owner_banker_id'], ['bankers.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_table(
        'calls',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('seller_company_id', sa.UUID(), nullable=False),
        sa.Column('banker_id', sa.UUID(), nullable=False),
        sa.Column('external_call_id', sa.String(), nullable=True),
        sa.Column('call_date', sa.DateTime(), nullable=True),
        sa.Column('duration', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('finalized_at', sa.DateTime(), nullable=True),
        sa.Column('message_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('outcome', sa.String(), nullable=True),
        sa.Column('summary', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('analysis_status', sa.String(), nullable=False, server_default='pending'),
        sa.Column('analysis_error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['seller_company_id'], ['seller_companies.id']),
        sa.ForeignKeyConstraint(['banker_id'], ['bankers.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_calls_external_call_id', 'calls', ['external_call_id'], unique=True)
    op.create_index('idx_calls_company_call_date', 'calls', ['seller_company_id', 'call_date'])

    op.create_table(
        'messages',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('call_id', sa.UUID(), nullable=False),
        sa.Column('role', sa.String(), nullable=False),
        sa.Column('transcript', sa.Text(), nullable=False),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['call_id'], ['calls.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('call_id', 'sequence', name='uq_messages_call_sequence'),
    )
    op.create_index('ix_messages_call_id', 'messages', ['call_id'])

    op.create_table(
        'actions',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('seller_company_id', sa.UUID(), nullable=False),
        sa.Column('action_type', sa.String(), nullable=False),
        sa.Column('scheduled_for', sa.DateTime(), nullable=False),
        sa.Column('status', sa.String(), nullable=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['seller_company_id'], ['seller_companies.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_actions_status_scheduled_for', 'actions', ['status', 'scheduled_for'])


def downgrade() -> None:
    op.drop_index('idx_actions_status_scheduled_for', table_name='actions')
    op.drop_table('actions')

    op.drop_index('ix_messages_call_id', table_name='messages')
    op.drop_table('messages')

    op.drop_index('idx_calls_company_call_date', table_name='calls')
    op.drop_index('ix_calls_external_call_id', table_name='calls')
    op.drop_table('calls')

    op.drop_table('seller_companies')
    op.drop_table('campaigns')
    op.drop_table('bankers')
