"""add_stores_and_email_verifications

Revision ID: 3f1c2a7d9b10
Revises:
Create Date: 2025-11-03 10:24:17.512034

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c2a7d9b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """
    Create stores and email_verifications tables.
    """
    conn = op.get_bind()
    inspector = sa.inspect(conn)
    tables = inspector.get_table_names()

    if 'stores' not in tables:
        op.create_table(
            'stores',
            sa.Column('id', sa.String(length=50), nullable=False),
            sa.Column('email', sa.String(length=255), nullable=False),
            sa.Column('name', sa.String(length=100), nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index('ix_stores_email', 'stores', ['email'], unique=True)

    if 'email_verifications' not in tables:
        op.create_table(
            'email_verifications',
            sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
            sa.Column('email', sa.String(length=255), nullable=False),
            sa.Column('code', sa.String(length=10), nullable=False),
            sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
            sa.Column('attempt_count', sa.Integer(), server_default='0', nullable=False),
            sa.Column('is_verified', sa.Boolean(), server_default='false', nullable=False),
            sa.PrimaryKeyConstraint('id'),
        )

        op.create_index('ix_email_verifications_email', 'email_verifications', ['email'])
        op.create_index('ix_email_verifications_email_verified', 'email_verifications', ['email', 'is_verified'])
        op.create_index('ix_email_verifications_created_at', 'email_verifications', ['created_at'])


def downgrade() -> None:
    """
    Drop email_verifications and stores tables.
    """
    op.drop_index('ix_email_verifications_created_at', table_name='email_verifications')
    op.drop_index('ix_email_verifications_email_verified', table_name='email_verifications')
    op.drop_index('ix_email_verifications_email', table_name='email_verifications')
    op.drop_table('email_verifications')
    op.drop_index('ix_stores_email', table_name='stores')
    op.drop_table('stores')
