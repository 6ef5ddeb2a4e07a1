"""Record observed response envelope shapes on the endpoint registry

Revision ID: 0002_registry_envelope_shapes
Revises: 0001_initial_schema
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '0002_registry_envelope_shapes'
down_revision: Union[str, None] = '0001_initial_schema'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    with op.batch_alter_table('api_endpoint_registry') as batch_op:
        batch_op.add_column(sa.Column('envelope_shapes', sa.JSON(), nullable=False, server_default='[]'))


def downgrade() -> None:
    with op.batch_alter_table('api_endpoint_registry') as batch_op:
        batch_op.drop_column('envelope_shapes')
