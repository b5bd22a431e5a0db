"""baseline schema

Revision ID: 0001_baseline_schema
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from __future__ import annotations

from alembic import op


revision = "0001_baseline_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute("CREATE SCHEMA IF NOT EXISTS tanda;")

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS tanda.pools (
          id text PRIMARY KEY,
          status text NOT NULL,
          current_round integer NOT NULL CHECK (current_round >= 1),
          doc jsonb NOT NULL,
          version integer NOT NULL DEFAULT 1,
          created_at timestamptz NOT NULL DEFAULT now(),
          updated_at timestamptz NOT NULL DEFAULT now()
        );
        CREATE INDEX IF NOT EXISTS ix_pools_status ON tanda.pools (status);
        """
    )

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS tanda.rounds (
          pool_id text NOT NULL REFERENCES tanda.pools (id),
          number integer NOT NULL CHECK (number >= 1),
          status text NOT NULL,
          payout_processed boolean NOT NULL DEFAULT false,
          halted boolean NOT NULL DEFAULT false,
          doc jsonb NOT NULL,
          created_at timestamptz NOT NULL DEFAULT now(),
          updated_at timestamptz NOT NULL DEFAULT now(),
          PRIMARY KEY (pool_id, number)
        );
        """
    )

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS tanda.contributions (
          id text PRIMARY KEY,
          pool_id text NOT NULL,
          round_number integer NOT NULL,
          member_id text NOT NULL,
          escrow_hold_id text,
          doc jsonb NOT NULL,
          created_at timestamptz NOT NULL DEFAULT now(),
          FOREIGN KEY (pool_id, round_number) REFERENCES tanda.rounds (pool_id, number)
        );
        CREATE INDEX IF NOT EXISTS ix_contributions_round ON tanda.contributions (pool_id, round_number);
        """
    )

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS tanda.escrow_holds (
          id text PRIMARY KEY,
          pool_id text NOT NULL,
          round_number integer NOT NULL,
          member_id text NOT NULL,
          state text NOT NULL CHECK (state IN ('authorized', 'captured', 'voided', 'released', 'expired')),
          needs_reconciliation boolean NOT NULL DEFAULT false,
          doc jsonb NOT NULL,
          created_at timestamptz NOT NULL DEFAULT now(),
          updated_at timestamptz NOT NULL DEFAULT now()
        );
        CREATE INDEX IF NOT EXISTS ix_escrow_holds_round ON tanda.escrow_holds (pool_id, round_number);
        CREATE INDEX IF NOT EXISTS ix_escrow_holds_reconcile
          ON tanda.escrow_holds (state) WHERE needs_reconciliation;
        """
    )

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS tanda.escrow_events (
          id bigserial PRIMARY KEY,
          hold_id text NOT NULL,
          pool_id text NOT NULL,
          round_number integer NOT NULL,
          from_state text,
          to_state text NOT NULL,
          at timestamptz NOT NULL,
          detail jsonb NOT NULL DEFAULT '{}'::jsonb
        );
        CREATE INDEX IF NOT EXISTS ix_escrow_events_hold ON tanda.escrow_events (hold_id, id);
        """
    )

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS tanda.payouts (
          id text PRIMARY KEY,
          pool_id text NOT NULL,
          round_number integer NOT NULL,
          attempt integer NOT NULL CHECK (attempt >= 1),
          status text NOT NULL CHECK (status IN ('pending', 'confirmed', 'failed', 'unknown')),
          doc jsonb NOT NULL,
          created_at timestamptz NOT NULL DEFAULT now(),
          updated_at timestamptz NOT NULL DEFAULT now(),
          UNIQUE (pool_id, round_number, attempt)
        );
        -- at most one confirmed payout per round
        CREATE UNIQUE INDEX IF NOT EXISTS ux_payouts_confirmed_round
          ON tanda.payouts (pool_id, round_number) WHERE status = 'confirmed';
        CREATE INDEX IF NOT EXISTS ix_payouts_status ON tanda.payouts (status);
        """
    )

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS tanda.early_payout_requests (
          id text PRIMARY KEY,
          pool_id text NOT NULL,
          round_number integer NOT NULL,
          outcome text NOT NULL CHECK (outcome IN ('pending', 'approved', 'denied')),
          doc jsonb NOT NULL,
          created_at timestamptz NOT NULL DEFAULT now()
        );
        CREATE INDEX IF NOT EXISTS ix_early_payout_requests_pool ON tanda.early_payout_requests (pool_id);
        """
    )


def downgrade() -> None:
    op.execute("DROP SCHEMA IF EXISTS tanda CASCADE;")
