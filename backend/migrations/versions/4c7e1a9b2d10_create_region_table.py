"""create region table

Revision ID: 4c7e1a9b2d10
Revises:
Create Date: 2025-10-06 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c7e1a9b2d10'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    if 'region' in set(insp.get_table_names()):
        return

    op.create_table(
        'region',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('kod', sa.Integer(), nullable=False),
        sa.Column('nazev', sa.String(length=128), nullable=False),
        sa.Column('okres', sa.String(length=128), nullable=True),
        sa.Column('pocet_obyvatel', sa.Integer(), nullable=True),
        sa.Column('geometry', sa.Text(), nullable=False),
    )
    op.create_index('ix_region_kod', 'region', ['kod'], unique=True)
    op.create_index('ix_region_okres', 'region', ['okres'], unique=False)


def downgrade():
    op.drop_index('ix_region_okres', table_name='region')
    op.drop_index('ix_region_kod', table_name='region')
    op.drop_table('region')
