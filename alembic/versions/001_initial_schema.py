"""Initial provider directory schema

Revision ID: 001
Revises:
Create Date: 2026-10-17 12:00:00.000000

Creates the provider directory tables:
1. customers - ownership scopes, including the "System" sentinel
2. provider_groups - sub-scopes under a customer
3. providers - local directory keyed by NPI
4. provider_registration_statuses - latest eMDR registration lookup
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    # =========================================================================
    # 1. CUSTOMERS TABLE
    # =========================================================================
    op.create_table(
        'customers',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True,
                  server_default=sa.text('uuid_generate_v4()')),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('system_key', sa.String(50), nullable=True, unique=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP'))
    )
    op.create_index('ix_customers_name', 'customers', ['name'])

    # =========================================================================
    # 2. PROVIDER_GROUPS TABLE
    # =========================================================================
    op.create_table(
        'provider_groups',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True,
                  server_default=sa.text('uuid_generate_v4()')),
        sa.Column('customer_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('customers.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP'))
    )
    op.create_index('ix_provider_groups_customer_id', 'provider_groups', ['customer_id'])

    # =========================================================================
    # 3. PROVIDERS TABLE
    # =========================================================================
    op.create_table(
        'providers',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True,
                  server_default=sa.text('uuid_generate_v4()')),
        sa.Column('npi', sa.String(20), nullable=False),
        sa.Column('name', sa.String(200), nullable=True),
        sa.Column('street', sa.String(200), nullable=True),
        sa.Column('street2', sa.String(200), nullable=True),
        sa.Column('city', sa.String(100), nullable=True),
        sa.Column('state', sa.String(20), nullable=True),
        sa.Column('zip', sa.String(20), nullable=True),
        sa.Column('remote_provider_id', sa.String(100), nullable=True),
        sa.Column('customer_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('customers.id', ondelete='SET NULL'), nullable=True),
        sa.Column('provider_group_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('provider_groups.id', ondelete='SET NULL'), nullable=True),
        sa.Column('last_list_snapshot', sa.JSON(), nullable=True),
        sa.Column('last_list_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_update_response', sa.JSON(), nullable=True),
        sa.Column('last_update_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP'))
    )
    op.create_index('ix_providers_npi', 'providers', ['npi'], unique=True)
    op.create_index('ix_providers_remote_provider_id', 'providers', ['remote_provider_id'])
    op.create_index('ix_providers_customer_id', 'providers', ['customer_id'])
    op.create_index('ix_providers_provider_group_id', 'providers', ['provider_group_id'])

    # =========================================================================
    # 4. PROVIDER_REGISTRATION_STATUSES TABLE
    # =========================================================================
    op.create_table(
        'provider_registration_statuses',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True,
                  server_default=sa.text('uuid_generate_v4()')),
        sa.Column('provider_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('providers.id', ondelete='CASCADE'),
                  nullable=False, unique=True),
        sa.Column('provider_npi', sa.String(20), nullable=True),
        sa.Column('remote_provider_id', sa.String(100), nullable=False),
        sa.Column('reg_status', sa.String(200), nullable=True),
        sa.Column('stage', sa.String(200), nullable=True),
        sa.Column('submission_status', sa.String(200), nullable=True),
        sa.Column('status', sa.String(200), nullable=True),
        sa.Column('call_error_code', sa.String(50), nullable=True),
        sa.Column('call_error_description', sa.Text(), nullable=True),
        sa.Column('provider_name', sa.String(200), nullable=True),
        sa.Column('street', sa.String(200), nullable=True),
        sa.Column('street2', sa.String(200), nullable=True),
        sa.Column('city', sa.String(100), nullable=True),
        sa.Column('state', sa.String(20), nullable=True),
        sa.Column('zip', sa.String(20), nullable=True),
        sa.Column('transaction_id_list', sa.Text(), nullable=True),
        sa.Column('status_changes', sa.JSON(), nullable=True),
        sa.Column('errors', sa.JSON(), nullable=True),
        sa.Column('error_list', sa.JSON(), nullable=True),
        sa.Column('fetched_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP'))
    )


def downgrade() -> None:
    op.drop_table('provider_registration_statuses')
    op.drop_index('ix_providers_provider_group_id', table_name='providers')
    op.drop_index('ix_providers_customer_id', table_name='providers')
    op.drop_index('ix_providers_remote_provider_id', table_name='providers')
    op.drop_index('ix_providers_npi', table_name='providers')
    op.drop_table('providers')
    op.drop_index('ix_provider_groups_customer_id', table_name='provider_groups')
    op.drop_table('provider_groups')
    op.drop_index('ix_customers_name', table_name='customers')
    op.drop_table('customers')
