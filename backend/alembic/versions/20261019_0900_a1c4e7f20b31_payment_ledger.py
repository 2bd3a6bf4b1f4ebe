"""payment ledger: intents, events, plans, site settings

Revision ID: a1c4e7f20b31
Revises:
Create Date: 2026-10-19 09:00:00

Creates the IPS payment ledger tables and seeds the plan catalog and the
default site prices.
"""
from datetime import datetime
from uuid import uuid4

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = 'a1c4e7f20b31'
down_revision = None
branch_labels = None
depends_on = None

payment_purpose = sa.Enum(
    'SUBSCRIPTION', 'TOPUP', 'CONTACT_REVEAL', 'PRIORITY_LISTING', 'URGENT_LISTING',
    name='paymentpurpose',
)
payment_intent_status = sa.Enum('PENDING', 'PAID', 'EXPIRED', 'CANCELLED', name='paymentintentstatus')


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    """Create ledger tables and seed reference data."""
    op.create_table(
        'payment_intents',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('purpose', payment_purpose, nullable=False),
        sa.Column('payer_id', sa.String(), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False, comment='Whole RSD'),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('reference_number', sa.String(length=64), nullable=False),
        sa.Column('status', payment_intent_status, nullable=False),
        sa.Column('description', sa.String(), nullable=False),
        sa.Column('related_entity_id', sa.String(), nullable=True),
        sa.Column('qr_payload', sa.Text(), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('paid_at', sa.DateTime(), nullable=True),
        sa.Column('verified_by', sa.String(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_payment_intents_id', 'payment_intents', ['id'])
    op.create_index('ix_payment_intents_reference_number', 'payment_intents', ['reference_number'], unique=True)
    op.create_index('ix_payment_intents_payer_id', 'payment_intents', ['payer_id'])
    op.create_index('ix_payment_intents_purpose', 'payment_intents', ['purpose'])
    op.create_index('ix_payment_intents_status', 'payment_intents', ['status'])
    op.create_index('ix_payment_intents_created_at', 'payment_intents', ['created_at'])
    op.create_index('ix_payment_intents_status_expires_at', 'payment_intents', ['status', 'expires_at'])

    op.create_table(
        'payment_events',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('payment_intent_id', sa.Uuid(), nullable=True),
        sa.Column('event_type', sa.String(), nullable=False),
        sa.Column('actor_id', sa.String(), nullable=True),
        sa.Column('changes', sa.JSON(), nullable=False),
        sa.Column('request_id', sa.String(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_payment_events_id', 'payment_events', ['id'])
    op.create_index('ix_payment_events_payment_intent_id', 'payment_events', ['payment_intent_id'])
    op.create_index('ix_payment_events_event_type', 'payment_events', ['event_type'])
    op.create_index('ix_payment_events_created_at', 'payment_events', ['created_at'])

    plans = op.create_table(
        'subscription_plans',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price_monthly', sa.Integer(), nullable=False, comment='Whole RSD'),
        sa.Column('credits_per_month', sa.Integer(), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False),
        sa.Column('display_order', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_subscription_plans_id', 'subscription_plans', ['id'])
    op.create_index('ix_subscription_plans_code', 'subscription_plans', ['code'], unique=True)
    op.create_index('ix_subscription_plans_active', 'subscription_plans', ['active'])
    op.create_index('ix_subscription_plans_created_at', 'subscription_plans', ['created_at'])

    site_settings = op.create_table(
        'site_settings',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('key', sa.String(length=64), nullable=False),
        sa.Column('value', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_site_settings_id', 'site_settings', ['id'])
    op.create_index('ix_site_settings_key', 'site_settings', ['key'], unique=True)
    op.create_index('ix_site_settings_created_at', 'site_settings', ['created_at'])

    now = datetime.utcnow()
    op.bulk_insert(plans, [
        {'id': uuid4(), 'code': code, 'name': name, 'description': description,
         'price_monthly': price, 'credits_per_month': credits, 'active': True,
         'display_order': order, 'created_at': now, 'updated_at': now}
        for order, (code, name, description, price, credits) in enumerate([
            ('FREE', 'Besplatno', 'Osnovna vidljivost, ograničen broj kontakata', 0, 2),
            ('STARTER', 'Starter', 'Za majstore koji tek počinju', 300, 10),
            ('PRO', 'Pro', 'Za ozbiljne profesionalce', 600, 30),
            ('UNLIMITED', 'Unlimited', 'Neograničen pristup za velike igrače', 1500, 999),
        ], start=1)
    ])
    op.bulk_insert(site_settings, [
        {'id': uuid4(), 'key': key, 'value': value, 'description': description,
         'created_at': now, 'updated_at': now}
        for key, value, description in [
            ('CONTACT_REVEAL_PRICE', '30', 'Cena otkrivanja kontakta (RSD)'),
            ('PRIORITY_LISTING_PRICE', '150', 'Cena prioritetnog oglasa (RSD)'),
            ('URGENT_LISTING_PRICE', '300', 'Cena hitnog oglasa (RSD)'),
            ('TOPUP_RSD_PER_CREDIT', '20', 'Broj dinara po kreditu pri dopuni'),
        ]
    ])


def downgrade() -> None:
    """Drop ledger tables."""
    op.drop_table('site_settings')
    op.drop_table('subscription_plans')
    op.drop_table('payment_events')
    op.drop_table('payment_intents')
    payment_intent_status.drop(op.get_bind(), checkfirst=True)
    payment_purpose.drop(op.get_bind(), checkfirst=True)
