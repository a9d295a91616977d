"""Baseline migration - tenants, team, RBAC assignments and usage metering

Revision ID: 0001_baseline
Revises: 
Create Date: 2026-10-19

Creates organizations, users, clients, coach-client assignments and the
monthly usage, alert and cost-event tables.
"""
from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = '0001_baseline'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create tenant, team and usage tables."""

    op.execute('CREATE EXTENSION IF NOT EXISTS pgcrypto')  # For gen_random_uuid()

    # ==========================================================================
    # Organizations
    # ==========================================================================
    op.execute('''
        CREATE TABLE organizations (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            name VARCHAR(255) NOT NULL,
            slug VARCHAR(100) UNIQUE NOT NULL,
            subscription_plan VARCHAR(20) NOT NULL DEFAULT 'standard',
            subscription_status VARCHAR(20) NOT NULL DEFAULT 'trial',
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')

    # ==========================================================================
    # Users (one role per user, plus biller/supervisor modifiers)
    # ==========================================================================
    op.execute('''
        CREATE TABLE users (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            email VARCHAR(255) UNIQUE NOT NULL,
            display_name VARCHAR(255) NOT NULL,
            role VARCHAR(20) NOT NULL,
            is_biller BOOLEAN NOT NULL DEFAULT false,
            is_supervisor BOOLEAN NOT NULL DEFAULT false,
            is_active BOOLEAN NOT NULL DEFAULT true,
            token_version INTEGER NOT NULL DEFAULT 1,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT ck_users_role CHECK (role IN ('owner', 'admin', 'manager', 'coach', 'support'))
        )
    ''')
    op.execute('CREATE INDEX ix_users_org ON users(organization_id)')

    # ==========================================================================
    # Clients and coach assignments
    # ==========================================================================
    op.execute('''
        CREATE TABLE clients (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            name VARCHAR(255) NOT NULL,
            email VARCHAR(255),
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            deleted_at TIMESTAMPTZ
        )
    ''')
    op.execute('CREATE INDEX ix_clients_org ON clients(organization_id)')

    op.execute('''
        CREATE TABLE coach_client_assignments (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            client_id UUID NOT NULL REFERENCES clients(id) ON DELETE CASCADE,
            coach_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            assignment_type VARCHAR(20) NOT NULL DEFAULT 'primary',
            assigned_by UUID REFERENCES users(id) ON DELETE SET NULL,
            assigned_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_coach_client_assignment UNIQUE (client_id, coach_id)
        )
    ''')
    op.execute('CREATE INDEX ix_coach_client_assignments_coach ON coach_client_assignments(coach_id)')

    # ==========================================================================
    # Monthly usage roll-up
    # ==========================================================================
    op.execute('''
        CREATE TABLE organization_usage (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            billing_period DATE NOT NULL,
            active_clients_count INTEGER NOT NULL DEFAULT 0,
            emails_sent INTEGER NOT NULL DEFAULT 0,
            sms_sent INTEGER NOT NULL DEFAULT 0,
            whatsapp_sent INTEGER NOT NULL DEFAULT 0,
            video_participants_minutes INTEGER NOT NULL DEFAULT 0,
            ai_summaries_generated INTEGER NOT NULL DEFAULT 0,
            ai_insights_generated INTEGER NOT NULL DEFAULT 0,
            transcription_minutes_used INTEGER NOT NULL DEFAULT 0,
            team_members_count INTEGER NOT NULL DEFAULT 0,
            storage_used_bytes BIGINT NOT NULL DEFAULT 0,
            estimated_monthly_cost NUMERIC(12, 2) NOT NULL DEFAULT 0,
            actual_cost_to_date NUMERIC(16, 6) NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_organization_usage_period UNIQUE (organization_id, billing_period)
        )
    ''')

    # ==========================================================================
    # Usage alerts (one row per org/resource/period/threshold)
    # ==========================================================================
    op.execute('''
        CREATE TABLE usage_alerts (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            alert_type VARCHAR(30) NOT NULL DEFAULT 'usage_warning',
            resource_type VARCHAR(30) NOT NULL,
            billing_period DATE NOT NULL,
            threshold INTEGER NOT NULL,
            current_usage INTEGER NOT NULL,
            limit_value INTEGER NOT NULL,
            usage_percentage DOUBLE PRECISION NOT NULL,
            severity VARCHAR(20) NOT NULL,
            message TEXT NOT NULL,
            occurrence_count INTEGER NOT NULL DEFAULT 1,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            last_seen_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_usage_alerts_threshold
                UNIQUE (organization_id, resource_type, billing_period, threshold)
        )
    ''')
    op.execute('CREATE INDEX ix_usage_alerts_org_period ON usage_alerts(organization_id, billing_period)')

    # ==========================================================================
    # Internal cost events
    # ==========================================================================
    op.execute('''
        CREATE TABLE cost_events (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            billing_period DATE NOT NULL,
            cost_type VARCHAR(50) NOT NULL,
            quantity NUMERIC(14, 4) NOT NULL,
            unit_cost NUMERIC(12, 4) NOT NULL,
            total_cost NUMERIC(16, 6) NOT NULL,
            details JSONB,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    op.execute('CREATE INDEX ix_cost_events_org_period ON cost_events(organization_id, billing_period)')


def downgrade() -> None:
    """Drop all tables."""
    op.execute('DROP TABLE IF EXISTS cost_events')
    op.execute('DROP TABLE IF EXISTS usage_alerts')
    op.execute('DROP TABLE IF EXISTS organization_usage')
    op.execute('DROP TABLE IF EXISTS coach_client_assignments')
    op.execute('DROP TABLE IF EXISTS clients')
    op.execute('DROP TABLE IF EXISTS users')
    op.execute('DROP TABLE IF EXISTS organizations')
