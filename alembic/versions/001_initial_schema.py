"""001 – Initial schema: users, leave requests, leave balances, audit trail.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000+00:00
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# Revision identifiers
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

ENUM_TYPES: list[tuple[str, list[str]]] = [
    (
        "leave_category",
        [
            "annual",
            "emergency",
            "permission",
            "unpaid",
            "work_from_home",
            "external_assignment",
        ],
    ),
    ("approval_status", ["pending", "approved", "rejected"]),
]


def _create_enum(name: str, values: list[str]) -> None:
    vals = ", ".join(f"'{v}'" for v in values)
    op.execute(f"CREATE TYPE {name} AS ENUM ({vals})")


def _drop_enum(name: str) -> None:
    op.execute(f"DROP TYPE IF EXISTS {name}")


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    # ── Extensions ────────────────────────────────────────────────────────
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    # ── Enum types ────────────────────────────────────────────────────────
    for name, values in ENUM_TYPES:
        _create_enum(name, values)

    # ── 1. users ──────────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE users (
            id              UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            email           VARCHAR(255) NOT NULL UNIQUE,
            full_name       VARCHAR(200) NOT NULL,
            department      VARCHAR(100),
            is_admin        BOOLEAN NOT NULL DEFAULT FALSE,
            is_manager      BOOLEAN NOT NULL DEFAULT FALSE,
            is_hr           BOOLEAN NOT NULL DEFAULT FALSE,
            is_active       BOOLEAN NOT NULL DEFAULT TRUE,
            created_at      TIMESTAMPTZ DEFAULT NOW(),
            updated_at      TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 2. leave_requests ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_requests (
            id                          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            owner_id                    UUID NOT NULL REFERENCES users(id),
            category                    leave_category NOT NULL,
            start_date                  DATE NOT NULL,
            end_date                    DATE,
            start_time                  TIME,
            end_time                    TIME,
            reason                      TEXT,
            department                  VARCHAR(100),
            number_of_days              INTEGER NOT NULL,
            manager_status              approval_status NOT NULL DEFAULT 'pending',
            manager_approver_id         UUID REFERENCES users(id),
            manager_comment             TEXT,
            manager_rejection_reason    TEXT,
            manager_decided_at          TIMESTAMPTZ,
            hr_status                   approval_status NOT NULL DEFAULT 'pending',
            hr_approver_id              UUID REFERENCES users(id),
            hr_comment                  TEXT,
            hr_rejection_reason         TEXT,
            hr_decided_at               TIMESTAMPTZ,
            balance_committed           BOOLEAN NOT NULL DEFAULT FALSE,
            version                     INTEGER NOT NULL,
            created_at                  TIMESTAMPTZ DEFAULT NOW(),
            updated_at                  TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_leave_requests_date_order
                CHECK (end_date IS NULL OR end_date >= start_date)
        )
    """)
    op.create_index(
        "ix_leave_requests_owner_dates",
        "leave_requests",
        ["owner_id", "start_date", "end_date"],
    )
    op.create_index("ix_leave_requests_department", "leave_requests", ["department"])

    # ── 3. leave_balances ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_balances (
            id                      UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            user_id                 UUID NOT NULL UNIQUE REFERENCES users(id),
            annual_allowed          INTEGER NOT NULL DEFAULT 0,
            annual_used             INTEGER NOT NULL DEFAULT 0,
            emergency_allowed       INTEGER NOT NULL DEFAULT 0,
            emergency_used          INTEGER NOT NULL DEFAULT 0,
            permission_allowed      INTEGER NOT NULL DEFAULT 0,
            permission_used         INTEGER NOT NULL DEFAULT 0,
            unpaid_used             INTEGER NOT NULL DEFAULT 0,
            work_from_home_used     INTEGER NOT NULL DEFAULT 0,
            version                 INTEGER NOT NULL,
            updated_at              TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_leave_balances_non_negative CHECK (
                annual_used >= 0 AND emergency_used >= 0 AND permission_used >= 0
                AND unpaid_used >= 0 AND work_from_home_used >= 0
            )
        )
    """)

    # ── 4. audit_trail ────────────────────────────────────────────────────
    op.create_table(
        "audit_trail",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("uuid_generate_v4()"),
        ),
        sa.Column(
            "actor_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id"),
            nullable=True,
        ),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("entity_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("old_values", postgresql.JSONB, nullable=True),
        sa.Column("new_values", postgresql.JSONB, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
    )
    op.create_index("ix_audit_trail_actor_id", "audit_trail", ["actor_id"])
    op.create_index("ix_audit_trail_entity", "audit_trail", ["entity_type", "entity_id"])
    op.create_index("ix_audit_trail_action", "audit_trail", ["action"])


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    # Drop tables in reverse dependency order
    tables = [
        "audit_trail",
        "leave_balances",
        "leave_requests",
        "users",
    ]
    for table in tables:
        op.execute(f"DROP TABLE IF EXISTS {table} CASCADE")

    for name, _ in reversed(ENUM_TYPES):
        _drop_enum(name)
