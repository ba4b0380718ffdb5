"""Add corporate internship requests

Revision ID: 002_company_requests
Revises: 001_initial
Create Date: 2026-10-19

Stores the public "hire interns" form submissions.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "002_company_requests"
down_revision: Union[str, None] = "001_initial"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create company_requirements table."""
    op.create_table(
        "company_requirements",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("company_name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("positions", sa.Integer(), nullable=False),
        sa.Column("requirements", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_company_requirements_created_at", "company_requirements", ["created_at"])


def downgrade() -> None:
    """Drop company_requirements table."""
    op.drop_index("ix_company_requirements_created_at", table_name="company_requirements")
    op.drop_table("company_requirements")
