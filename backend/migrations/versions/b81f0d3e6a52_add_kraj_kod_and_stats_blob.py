"""add kraj_kod to region; stats_blob table

Revision ID: b81f0d3e6a52
Revises: 4c7e1a9b2d10
Create Date: 2025-10-14 18:30:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'b81f0d3e6a52'
down_revision = '4c7e1a9b2d10'
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    region_cols = {c['name'] for c in insp.get_columns('region')}
    with op.batch_alter_table('region') as batch_op:
        if 'kraj_kod' not in region_cols:
            batch_op.add_column(sa.Column('kraj_kod', sa.Integer(), nullable=True))
            batch_op.create_index('ix_region_kraj_kod', ['kraj_kod'], unique=False)

    if 'stats_blob' not in existing_tables:
        op.create_table(
            'stats_blob',
            sa.Column('key', sa.String(length=64), primary_key=True),
            sa.Column('payload', sa.Text(), nullable=False),
            sa.Column('updated_at', sa.Float(), nullable=False),
        )


def downgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    if 'stats_blob' in set(insp.get_table_names()):
        op.drop_table('stats_blob')

    region_cols = {c['name'] for c in insp.get_columns('region')}
    if 'kraj_kod' in region_cols:
        with op.batch_alter_table('region') as batch_op:
            batch_op.drop_index('ix_region_kraj_kod')
            batch_op.drop_column('kraj_kod')
