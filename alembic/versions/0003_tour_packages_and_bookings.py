"""tour packages and bookings

Revision ID: 0003
Revises: 0002
Create Date: 2025-04-18 10:15:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0003'
down_revision: Union[str, Sequence[str], None] = '0002'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'tour_packages',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(255), nullable=False),
        sa.Column('destination', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('image_url', sa.String(500), nullable=True),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('duration_days', sa.Integer(), nullable=False),
        sa.Column('duration_nights', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('departure_days', sa.JSON(), nullable=False),
        sa.Column('seats_total', sa.Integer(), nullable=False),
        sa.Column('seats_available', sa.Integer(), nullable=False),
        sa.Column('itinerary', sa.JSON(), nullable=False),
        sa.Column('includes', sa.JSON(), nullable=False),
        sa.Column('excludes', sa.JSON(), nullable=False),
        sa.Column('highlights', sa.JSON(), nullable=False),
        sa.Column('featured', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.TIMESTAMP(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.TIMESTAMP(), server_default=sa.func.now()),
        sa.CheckConstraint('price >= 0', name='ck_tour_packages_price_non_negative'),
        sa.CheckConstraint('seats_total >= 0', name='ck_tour_packages_seats_total_non_negative'),
        sa.CheckConstraint(
            'seats_available >= 0 AND seats_available <= seats_total',
            name='ck_tour_packages_seats_available_range',
        ),
    )
    op.create_index('ix_tour_packages_id', 'tour_packages', ['id'])
    op.create_index('ix_tour_packages_slug', 'tour_packages', ['slug'], unique=True)
    op.create_index('ix_tour_packages_destination', 'tour_packages', ['destination'])

    op.create_table(
        'tour_bookings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('package_id', sa.Integer(), sa.ForeignKey('tour_packages.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('departure_date', sa.Date(), nullable=False),
        sa.Column('num_travelers', sa.Integer(), nullable=False),
        sa.Column('total_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('contact_info', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.TIMESTAMP(), server_default=sa.func.now()),
        sa.CheckConstraint('num_travelers >= 1', name='ck_tour_bookings_num_travelers_positive'),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled', 'completed')",
            name='ck_tour_bookings_status',
        ),
    )
    op.create_index('ix_tour_bookings_id', 'tour_bookings', ['id'])
    op.create_index('ix_tour_bookings_package_id', 'tour_bookings', ['package_id'])
    op.create_index('ix_tour_bookings_user_id', 'tour_bookings', ['user_id'])
    op.create_index('ix_tour_bookings_package_status', 'tour_bookings', ['package_id', 'status'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('tour_bookings')
    op.drop_table('tour_packages')
