"""fulfillment: intent credits, subscriptions, credit grants

Revision ID: c3e8f51a9d27
Revises: a1c4e7f20b31
Create Date: 2026-10-26 09:00:00

Stores the credits each intent buys and adds the tables PAID intents are
delivered into.
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = 'c3e8f51a9d27'
down_revision = 'a1c4e7f20b31'
branch_labels = None
depends_on = None

subscription_status = sa.Enum('ACTIVE', 'REPLACED', name='subscriptionstatus')


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    """Add intent credits, subscriptions and credit grants."""
    op.add_column(
        'payment_intents',
        sa.Column('credits', sa.Integer(), nullable=True, comment='Credits granted once paid'),
    )

    op.create_table(
        'subscriptions',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('payer_id', sa.String(), nullable=False),
        sa.Column('plan_code', sa.String(length=32), nullable=False),
        sa.Column('plan_name', sa.String(), nullable=False),
        sa.Column('price', sa.Integer(), nullable=False, comment='Whole RSD'),
        sa.Column('credits_total', sa.Integer(), nullable=False),
        sa.Column('credits_remaining', sa.Integer(), nullable=False),
        sa.Column('status', subscription_status, nullable=False),
        sa.Column('current_period_start', sa.DateTime(), nullable=False),
        sa.Column('current_period_end', sa.DateTime(), nullable=False),
        sa.Column('payment_intent_id', sa.Uuid(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['payment_intent_id'], ['payment_intents.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('payment_intent_id'),
    )
    op.create_index('ix_subscriptions_id', 'subscriptions', ['id'])
    op.create_index('ix_subscriptions_payer_id', 'subscriptions', ['payer_id'])
    op.create_index('ix_subscriptions_status', 'subscriptions', ['status'])
    op.create_index('ix_subscriptions_current_period_end', 'subscriptions', ['current_period_end'])
    op.create_index('ix_subscriptions_created_at', 'subscriptions', ['created_at'])

    op.create_table(
        'credit_grants',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('payer_id', sa.String(), nullable=False),
        sa.Column('credits', sa.Integer(), nullable=False),
        sa.Column('reason', sa.String(), nullable=False),
        sa.Column('payment_intent_id', sa.Uuid(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['payment_intent_id'], ['payment_intents.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('payment_intent_id'),
    )
    op.create_index('ix_credit_grants_id', 'credit_grants', ['id'])
    op.create_index('ix_credit_grants_payer_id', 'credit_grants', ['payer_id'])
    op.create_index('ix_credit_grants_created_at', 'credit_grants', ['created_at'])


def downgrade() -> None:
    """Drop fulfillment tables and intent credits."""
    op.drop_table('credit_grants')
    op.drop_table('subscriptions')
    subscription_status.drop(op.get_bind(), checkfirst=True)
    op.drop_column('payment_intents', 'credits')
