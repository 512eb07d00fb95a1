"""rename agent role to tour_guide

Revision ID: 0002
Revises: 0001
Create Date: 2025-03-02 14:30:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0002'
down_revision: Union[str, Sequence[str], None] = '0001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _swap_role(old: str, new: str) -> None:
    """Moves every user and ledger row from role ``old`` to ``new``."""
    # Relax the constraint first so both names are legal while rows move
    with op.batch_alter_table('users') as batch_op:
        batch_op.drop_constraint('users_role_check', type_='check')
        batch_op.create_check_constraint('users_role_check', "role IN ('user', 'agent', 'tour_guide', 'admin')")

    op.execute(sa.text("UPDATE users SET role = :new WHERE role = :old").bindparams(new=new, old=old))
    op.execute(sa.text("UPDATE activity_logs SET actor_role = :new WHERE actor_role = :old").bindparams(new=new, old=old))

    with op.batch_alter_table('users') as batch_op:
        batch_op.drop_constraint('users_role_check', type_='check')
        batch_op.create_check_constraint('users_role_check', f"role IN ('user', '{new}', 'admin')")


def upgrade() -> None:
    """Upgrade schema."""
    _swap_role('agent', 'tour_guide')

    op.drop_index('idx_requests_agent_id', table_name='requests')
    with op.batch_alter_table('requests') as batch_op:
        batch_op.alter_column('agent_id', new_column_name='tour_guide_id', existing_type=sa.Integer())
    op.create_index('ix_requests_tour_guide_id', 'requests', ['tour_guide_id'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_requests_tour_guide_id', table_name='requests')
    with op.batch_alter_table('requests') as batch_op:
        batch_op.alter_column('tour_guide_id', new_column_name='agent_id', existing_type=sa.Integer())
    op.create_index('idx_requests_agent_id', 'requests', ['agent_id'])

    _swap_role('tour_guide', 'agent')
