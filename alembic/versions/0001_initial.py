"""initial

Revision ID: 0001_initial
Revises: 
Create Date: 2026-10-17 00:00:00.000000
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('trips',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('owner_id', sa.Integer(), nullable=False),
        sa.Column('source', sa.String(length=255), nullable=False),
        sa.Column('destination', sa.String(length=255), nullable=False),
        sa.Column('departure_time', sa.DateTime(), nullable=False),
        sa.Column('capacity', sa.Integer(), nullable=False),
        sa.Column('available_seats', sa.Integer(), nullable=False),
        sa.Column('price_per_seat', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='Open'),
        sa.Column('pink_mode', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('capacity >= 0', name='ck_trip_capacity'),
        sa.CheckConstraint('available_seats >= 0 AND available_seats <= capacity', name='ck_trip_available_seats'),
        sa.CheckConstraint('price_per_seat >= 0', name='ck_trip_price'),
    )
    op.create_index('ix_trips_owner_id', 'trips', ['owner_id'], unique=False)
    op.create_index('ix_trips_departure_time', 'trips', ['departure_time'], unique=False)
    op.create_index('ix_trips_status', 'trips', ['status'], unique=False)

    op.create_table('bookings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('trip_id', sa.Integer(), nullable=False),
        sa.Column('rider_id', sa.Integer(), nullable=False),
        sa.Column('seats_booked', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='pending'),
        sa.Column('total_amount', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.Column('booked_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['trip_id'], ['trips.id'], ondelete='CASCADE'),
        sa.CheckConstraint('seats_booked >= 1', name='ck_booking_seats'),
    )
    op.create_index('ix_bookings_trip_id', 'bookings', ['trip_id'], unique=False)
    op.create_index('ix_bookings_rider_id', 'bookings', ['rider_id'], unique=False)
    op.create_index('ix_bookings_status', 'bookings', ['status'], unique=False)
    op.create_index('ix_bookings_expires_at', 'bookings', ['expires_at'], unique=False)
    op.create_index(
        'uq_booking_active_rider', 'bookings', ['trip_id', 'rider_id'], unique=True,
        postgresql_where=sa.text("status != 'cancelled'"),
    )

    op.create_table('payments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('booking_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('mode', sa.String(length=32), nullable=False, server_default='UPI'),
        sa.Column('provider_ref', sa.String(length=255), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='Completed'),
        sa.Column('paid_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('provider_ref', name='payments_provider_ref_key'),
    )
    op.create_index('ix_payments_booking_id', 'payments', ['booking_id'], unique=False)
    op.create_index('ix_payments_status', 'payments', ['status'], unique=False)


def downgrade():
    op.drop_table('payments')
    op.drop_table('bookings')
    op.drop_table('trips')
