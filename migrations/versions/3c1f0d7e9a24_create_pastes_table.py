"""Create pastes table

Revision ID: 3c1f0d7e9a24
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3c1f0d7e9a24'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'pastes',
        sa.Column('id', sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('file_name', sa.String(length=1024), nullable=True),
        sa.Column('file_size', sa.BigInteger(), nullable=True),
        sa.Column('privacy', sa.String(length=16), nullable=False),
        sa.Column('encrypted_key', sa.Text(), nullable=True),
        sa.Column('editable', sa.Boolean(), nullable=False),
        sa.Column('extension', sa.String(length=64), nullable=False),
        sa.Column('paste_type', sa.String(length=16), nullable=False),
        sa.Column('created', sa.BigInteger(), nullable=False),
        sa.Column('expiration', sa.BigInteger(), nullable=False),
        sa.Column('last_read', sa.BigInteger(), nullable=False),
        sa.Column('read_count', sa.Integer(), nullable=False),
        sa.Column('burn_after_reads', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'ix_pastes_expiration',
        'pastes',
        ['expiration'],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index('ix_pastes_expiration', table_name='pastes')
    op.drop_table('pastes')
