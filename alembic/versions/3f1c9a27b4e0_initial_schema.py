"""initial schema

Revision ID: 3f1c9a27b4e0
Revises:
Create Date: 2026-10-12 09:30:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f1c9a27b4e0"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

PHASE_TABLES = ("submission_phases", "consideration_phases", "deliberation_phases", "voting_phases")


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade() -> None:
    """Create users, funding rounds, proposals, votes and worker tables."""
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("username", sa.String(length=255), nullable=False),
        sa.Column("auth_source", sa.String(length=50), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )

    op.create_table(
        "funding_rounds",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("mef_id", sa.Integer(), nullable=False, unique=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("status", sa.String(length=50), nullable=False, server_default="DRAFT"),
        sa.Column("total_budget", sa.Numeric(20, 2), nullable=False),
        _timestamp("start_date"),
        _timestamp("end_date"),
        sa.Column("created_by_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )

    for table in PHASE_TABLES:
        op.create_table(
            table,
            sa.Column("id", sa.Uuid(), primary_key=True),
            sa.Column(
                "funding_round_id",
                sa.Uuid(),
                sa.ForeignKey("funding_rounds.id", ondelete="CASCADE"),
                nullable=False,
                unique=True,
            ),
            _timestamp("start_date"),
            _timestamp("end_date"),
        )

    op.create_table(
        "reviewer_groups",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        _timestamp("created_at"),
    )
    op.create_table(
        "reviewer_group_members",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "reviewer_group_id", sa.Uuid(), sa.ForeignKey("reviewer_groups.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        _timestamp("created_at"),
        sa.UniqueConstraint("reviewer_group_id", "user_id", name="uq_reviewer_group_member"),
    )
    op.create_index("ix_reviewer_group_members_reviewer_group_id", "reviewer_group_members", ["reviewer_group_id"])
    op.create_index("ix_reviewer_group_members_user_id", "reviewer_group_members", ["user_id"])
    op.create_table(
        "funding_round_reviewer_groups",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "funding_round_id", sa.Uuid(), sa.ForeignKey("funding_rounds.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column(
            "reviewer_group_id", sa.Uuid(), sa.ForeignKey("reviewer_groups.id", ondelete="CASCADE"), nullable=False
        ),
        sa.UniqueConstraint("funding_round_id", "reviewer_group_id", name="uq_funding_round_reviewer_group"),
    )
    op.create_index(
        "ix_funding_round_reviewer_groups_funding_round_id", "funding_round_reviewer_groups", ["funding_round_id"]
    )

    op.create_table(
        "proposals",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("funding_round_id", sa.Uuid(), sa.ForeignKey("funding_rounds.id"), nullable=True),
        sa.Column("proposal_name", sa.String(length=255), nullable=False),
        sa.Column("abstract", sa.Text(), nullable=False, server_default=""),
        sa.Column("motivation", sa.Text(), nullable=False, server_default=""),
        sa.Column("rationale", sa.Text(), nullable=False, server_default=""),
        sa.Column("delivery_requirements", sa.Text(), nullable=False, server_default=""),
        sa.Column("security_and_performance", sa.Text(), nullable=False, server_default=""),
        sa.Column("budget_request", sa.Numeric(20, 2), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("status", sa.String(length=50), nullable=False, server_default="DRAFT"),
        _timestamp("submitted_at", nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_index("ix_proposals_user_id", "proposals", ["user_id"])
    op.create_index("ix_proposals_funding_round_id", "proposals", ["funding_round_id"])
    op.create_index("ix_proposals_status", "proposals", ["status"])

    op.create_table(
        "consideration_votes",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("proposal_id", sa.Integer(), sa.ForeignKey("proposals.id", ondelete="CASCADE"), nullable=False),
        sa.Column("voter_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("decision", sa.String(length=20), nullable=False),
        sa.Column("feedback", sa.Text(), nullable=False, server_default=""),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.UniqueConstraint("proposal_id", "voter_id", name="uq_consideration_vote"),
    )
    op.create_index("ix_consideration_votes_proposal_id", "consideration_votes", ["proposal_id"])
    op.create_index("ix_consideration_votes_voter_id", "consideration_votes", ["voter_id"])

    op.create_table(
        "deliberation_votes",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("proposal_id", sa.Integer(), sa.ForeignKey("proposals.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("feedback", sa.Text(), nullable=False, server_default=""),
        sa.Column("recommendation", sa.Boolean(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.UniqueConstraint("proposal_id", "user_id", name="uq_deliberation_vote"),
    )
    op.create_index("ix_deliberation_votes_proposal_id", "deliberation_votes", ["proposal_id"])
    op.create_index("ix_deliberation_votes_user_id", "deliberation_votes", ["user_id"])

    op.create_table(
        "ocv_consideration_votes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "proposal_id",
            sa.Integer(),
            sa.ForeignKey("proposals.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("vote_data", postgresql.JSONB(), nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )

    op.create_table(
        "gpt_survey_proposal_submissions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "proposal_id",
            sa.Integer(),
            sa.ForeignKey("proposals.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("request", sa.Text(), nullable=False),
        sa.Column("response", sa.Text(), nullable=False),
        sa.Column("is_success", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("summary", sa.Text(), nullable=True),
        _timestamp("summary_updated_at", nullable=True),
        _timestamp("created_at"),
    )
    op.create_table(
        "gpt_survey_feedback_submissions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "deliberation_vote_id",
            sa.Uuid(),
            sa.ForeignKey("deliberation_votes.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("proposal_id", sa.Integer(), nullable=False),
        sa.Column("request", sa.Text(), nullable=False),
        sa.Column("response", sa.Text(), nullable=False),
        sa.Column("is_success", sa.Boolean(), nullable=False, server_default=sa.false()),
        _timestamp("created_at"),
    )
    op.create_index(
        "ix_gpt_survey_feedback_submissions_proposal_id", "gpt_survey_feedback_submissions", ["proposal_id"]
    )

    op.create_table(
        "worker_heartbeats",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="NOT_STARTED"),
        _timestamp("last_heartbeat"),
        sa.Column("metadata", postgresql.JSONB(), nullable=True),
        _timestamp("created_at"),
    )
    op.create_index("ix_worker_heartbeats_name", "worker_heartbeats", ["name"])
    op.create_index("ix_worker_heartbeats_status", "worker_heartbeats", ["status"])


def downgrade() -> None:
    """Drop every table in reverse dependency order."""
    op.drop_table("worker_heartbeats")
    op.drop_table("gpt_survey_feedback_submissions")
    op.drop_table("gpt_survey_proposal_submissions")
    op.drop_table("ocv_consideration_votes")
    op.drop_table("deliberation_votes")
    op.drop_table("consideration_votes")
    op.drop_table("proposals")
    op.drop_table("funding_round_reviewer_groups")
    op.drop_table("reviewer_group_members")
    op.drop_table("reviewer_groups")
    for table in reversed(PHASE_TABLES):
        op.drop_table(table)
    op.drop_table("funding_rounds")
    op.drop_table("users")
