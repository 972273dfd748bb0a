"""payout requests, wallets, wallet ledger and status history

Revision ID: 0001_payout_wallet_schema
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

from __future__ import annotations

from alembic import op


revision = "0001_payout_wallet_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto;")
    op.execute("CREATE SCHEMA IF NOT EXISTS app;")

    # read-only collaborators (account directory, platform settings)
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS app.profiles (
            user_id uuid PRIMARY KEY,
            name text,
            email text,
            role text NOT NULL DEFAULT 'user',
            user_status text NOT NULL DEFAULT 'pending',
            kyc_status text,
            created_at timestamptz NOT NULL DEFAULT now()
        );
        """
    )
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS app.platform_settings (
            key text PRIMARY KEY,
            value text NOT NULL,
            updated_at timestamptz NOT NULL DEFAULT now()
        );
        """
    )

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS app.wallets (
            user_id uuid NOT NULL,
            balance numeric(14,2) NOT NULL DEFAULT 0,
            opening_balance numeric(14,2) NOT NULL DEFAULT 0,
            updated_at timestamptz NOT NULL DEFAULT now(),
            CONSTRAINT wallets_pkey PRIMARY KEY (user_id),
            CONSTRAINT wallets_balance_nonnegative CHECK (balance >= 0)
        );
        """
    )

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS app.payout_requests (
            id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id uuid NOT NULL,
            amount numeric(14,2) NOT NULL,
            payment_method text NOT NULL,
            payment_details jsonb NOT NULL DEFAULT '{}'::jsonb,
            status text NOT NULL DEFAULT 'pending',
            admin_notes text,
            created_at timestamptz NOT NULL DEFAULT now(),
            updated_at timestamptz NOT NULL DEFAULT now(),
            processed_at timestamptz,
            processed_by uuid,
            CONSTRAINT payout_requests_amount_positive CHECK (amount > 0),
            CONSTRAINT payout_requests_status_check
                CHECK (status IN ('pending','approved','rejected','completed')),
            CONSTRAINT payout_requests_user_fk
                FOREIGN KEY (user_id) REFERENCES app.wallets (user_id)
        );
        """
    )
    op.execute(
        """
        CREATE INDEX IF NOT EXISTS payout_requests_user_status_idx
            ON app.payout_requests (user_id, status);
        CREATE INDEX IF NOT EXISTS payout_requests_status_created_idx
            ON app.payout_requests (status, created_at DESC);
        """
    )

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS app.wallet_transactions (
            id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
            seq bigserial NOT NULL,
            user_id uuid NOT NULL,
            amount numeric(14,2) NOT NULL,
            type text NOT NULL,
            description text,
            payout_id uuid REFERENCES app.payout_requests (id),
            order_id uuid,
            created_at timestamptz NOT NULL DEFAULT now(),
            CONSTRAINT wallet_transactions_amount_nonzero CHECK (amount <> 0),
            CONSTRAINT wallet_transactions_user_fk
                FOREIGN KEY (user_id) REFERENCES app.wallets (user_id)
        );
        CREATE INDEX IF NOT EXISTS wallet_transactions_user_created_idx
            ON app.wallet_transactions (user_id, created_at DESC, seq DESC);
        CREATE INDEX IF NOT EXISTS wallet_transactions_payout_idx
            ON app.wallet_transactions (payout_id);
        """
    )

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS app.payout_status_history (
            id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
            seq bigserial NOT NULL,
            payout_id uuid NOT NULL,
            old_status text,
            new_status text NOT NULL,
            changed_by uuid,
            notes text,
            created_at timestamptz NOT NULL DEFAULT now(),
            CONSTRAINT payout_status_history_payout_fk
                FOREIGN KEY (payout_id) REFERENCES app.payout_requests (id)
        );
        CREATE INDEX IF NOT EXISTS payout_status_history_payout_idx
            ON app.payout_status_history (payout_id, created_at DESC, seq DESC);
        """
    )

    # append-only ledger + history; immutable payout amount/owner
    op.execute(
        """
        CREATE OR REPLACE FUNCTION app.reject_ledger_mutation() RETURNS trigger AS $$
        BEGIN
            RAISE EXCEPTION 'DB_ERROR: LEDGER_APPEND_ONLY';
        END;
        $$ LANGUAGE plpgsql;

        CREATE OR REPLACE FUNCTION app.reject_history_mutation() RETURNS trigger AS $$
        BEGIN
            RAISE EXCEPTION 'DB_ERROR: HISTORY_APPEND_ONLY';
        END;
        $$ LANGUAGE plpgsql;

        CREATE OR REPLACE FUNCTION app.guard_payout_amount() RETURNS trigger AS $$
        BEGIN
            IF NEW.amount IS DISTINCT FROM OLD.amount OR NEW.user_id IS DISTINCT FROM OLD.user_id THEN
                RAISE EXCEPTION 'DB_ERROR: PAYOUT_AMOUNT_IMMUTABLE';
            END IF;
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;

        DROP TRIGGER IF EXISTS wallet_transactions_append_only ON app.wallet_transactions;
        CREATE TRIGGER wallet_transactions_append_only
            BEFORE UPDATE OR DELETE ON app.wallet_transactions
            FOR EACH ROW EXECUTE FUNCTION app.reject_ledger_mutation();

        DROP TRIGGER IF EXISTS payout_status_history_append_only ON app.payout_status_history;
        CREATE TRIGGER payout_status_history_append_only
            BEFORE UPDATE OR DELETE ON app.payout_status_history
            FOR EACH ROW EXECUTE FUNCTION app.reject_history_mutation();

        DROP TRIGGER IF EXISTS payout_requests_amount_immutable ON app.payout_requests;
        CREATE TRIGGER payout_requests_amount_immutable
            BEFORE UPDATE ON app.payout_requests
            FOR EACH ROW EXECUTE FUNCTION app.guard_payout_amount();
        """
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS app.payout_status_history;")
    op.execute("DROP TABLE IF EXISTS app.wallet_transactions;")
    op.execute("DROP TABLE IF EXISTS app.payout_requests;")
    op.execute("DROP TABLE IF EXISTS app.wallets;")
    op.execute("DROP TABLE IF EXISTS app.platform_settings;")
    op.execute("DROP TABLE IF EXISTS app.profiles;")
    op.execute("DROP FUNCTION IF EXISTS app.reject_ledger_mutation();")
    op.execute("DROP FUNCTION IF EXISTS app.reject_history_mutation();")
    op.execute("DROP FUNCTION IF EXISTS app.guard_payout_amount();")
