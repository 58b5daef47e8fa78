"""Initial migration - Create routes, buses and scheduled_rides tables

Revision ID: 001
Revises: 
Create Date: 2026-10-18 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Create routes table
    op.create_table(
        'routes',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('route_number', sa.String(), nullable=False),
        sa.Column('route_name', sa.String(), nullable=False),
        sa.Column('departure_location', sa.String(), nullable=False),
        sa.Column('departure_lat', sa.Float(), nullable=False),
        sa.Column('departure_lng', sa.Float(), nullable=False),
        sa.Column('arrival_location', sa.String(), nullable=False),
        sa.Column('arrival_lat', sa.Float(), nullable=False),
        sa.Column('arrival_lng', sa.Float(), nullable=False),
        sa.Column('polyline', sa.Text(), nullable=True),
        sa.Column('ride_time', sa.String(), nullable=False, server_default=''),
        sa.Column('geofence_radius_meters', sa.Float(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('route_number'),
    )

    # Create buses table
    op.create_table(
        'buses',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('bus_number', sa.String(), nullable=False),
        sa.Column('bus_type', sa.String(), nullable=False, server_default='Non-AC'),
        sa.Column('driver_name', sa.String(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('bus_number'),
    )

    # Create scheduled_rides table
    op.create_table(
        'scheduled_rides',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('bus_id', sa.String(length=36), nullable=False),
        sa.Column('route_id', sa.String(length=36), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('departure_time', sa.String(length=5), nullable=False),
        sa.Column('status', sa.String(), nullable=False, server_default='Scheduled'),
        sa.Column('current_lat', sa.Float(), nullable=True),
        sa.Column('current_lng', sa.Float(), nullable=True),
        sa.Column('current_location_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_index('ix_scheduled_rides_bus_id', 'scheduled_rides', ['bus_id'])
    op.create_index('ix_scheduled_rides_route_id', 'scheduled_rides', ['route_id'])
    op.create_index('ix_scheduled_rides_date', 'scheduled_rides', ['date'])
    op.create_index('ix_scheduled_rides_date_departure', 'scheduled_rides', ['date', 'departure_time'])


def downgrade() -> None:
    op.drop_index('ix_scheduled_rides_date_departure', table_name='scheduled_rides')
    op.drop_index('ix_scheduled_rides_date', table_name='scheduled_rides')
    op.drop_index('ix_scheduled_rides_route_id', table_name='scheduled_rides')
    op.drop_index('ix_scheduled_rides_bus_id', table_name='scheduled_rides')
    op.drop_table('scheduled_rides')
    op.drop_table('buses')
    op.drop_table('routes')
