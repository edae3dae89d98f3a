"""Initial schema with all tables

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa


revision: str = '001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


MANIFEST_STATUSES = ('DRAFT', 'OPEN', 'BUILDING', 'CLOSED', 'DEPARTED', 'ARRIVED', 'RECONCILED')
SHIPMENT_STATUSES = (
    'CREATED', 'RECEIVED', 'PICKED_UP', 'RECEIVED_AT_ORIGIN_HUB', 'LOADED_FOR_LINEHAUL',
    'IN_TRANSIT_TO_DESTINATION', 'RECEIVED_AT_DEST_HUB', 'OUT_FOR_DELIVERY', 'DELIVERED',
    'EXCEPTION_RAISED', 'EXCEPTION_RESOLVED', 'CANCELLED',
)


def upgrade() -> None:
    # Manifests table
    op.create_table(
        'manifests',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('manifest_no', sa.String(20), nullable=False),
        sa.Column('type', sa.Enum('AIR', 'TRUCK', name='manifesttype'), nullable=False),
        sa.Column('from_hub_id', sa.String(36), nullable=False),
        sa.Column('to_hub_id', sa.String(36), nullable=False),
        sa.Column('status', sa.Enum(*MANIFEST_STATUSES, name='manifeststatus'), nullable=False, server_default='DRAFT'),
        sa.Column('vehicle_meta', sa.JSON(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('total_shipments', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_packages', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_weight', sa.Numeric(14, 3), nullable=False, server_default='0'),
        sa.Column('total_cod', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('created_by_staff_id', sa.String(36), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('closed_by_staff_id', sa.String(36), nullable=True),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('departed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('arrived_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('reconciled_by_staff_id', sa.String(36), nullable=True),
        sa.Column('reconciled_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_unique_constraint('uq_manifests_manifest_no', 'manifests', ['manifest_no'])
    op.create_index('ix_manifest_status', 'manifests', ['status'])
    op.create_index('ix_manifest_route', 'manifests', ['from_hub_id', 'to_hub_id'])

    # Shipments table
    op.create_table(
        'shipments',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('awb_number', sa.String(20), nullable=False),
        sa.Column('status', sa.Enum(*SHIPMENT_STATUSES, name='shipmentstatus'), nullable=False, server_default='CREATED'),
        sa.Column('origin_hub_id', sa.String(36), nullable=False),
        sa.Column('destination_hub_id', sa.String(36), nullable=False),
        sa.Column('package_count', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('total_weight', sa.Numeric(12, 3), nullable=False, server_default='0'),
        sa.Column('cod_amount', sa.Numeric(12, 2), nullable=True),
        sa.Column('receiver_name', sa.String(255), nullable=True),
        sa.Column('sender_name', sa.String(255), nullable=True),
        sa.Column('manifest_id', sa.String(36), sa.ForeignKey('manifests.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_unique_constraint('uq_shipments_awb_number', 'shipments', ['awb_number'])
    op.create_index('ix_shipment_status', 'shipments', ['status'])
    op.create_index('ix_shipment_destination', 'shipments', ['destination_hub_id'])

    # Manifest items table
    op.create_table(
        'manifest_items',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('manifest_id', sa.String(36), sa.ForeignKey('manifests.id', ondelete='CASCADE'), nullable=False),
        sa.Column('shipment_id', sa.String(36), sa.ForeignKey('shipments.id', ondelete='CASCADE'), nullable=False),
        sa.Column('scanned_by_staff_id', sa.String(36), nullable=True),
        sa.Column('scanned_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column(
            'previous_shipment_status',
            sa.Enum(*SHIPMENT_STATUSES, name='shipmentstatus', create_type=False),
            nullable=True,
        ),
        sa.Column('package_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('weight', sa.Numeric(12, 3), nullable=False, server_default='0'),
        sa.Column('cod_amount', sa.Numeric(12, 2), nullable=False, server_default='0'),
    )

    # Unique constraint for idempotent attach
    op.create_unique_constraint('uq_manifest_item_shipment', 'manifest_items', ['manifest_id', 'shipment_id'])
    op.create_index('ix_manifest_item_manifest', 'manifest_items', ['manifest_id'])
    op.create_index('ix_manifest_item_shipment', 'manifest_items', ['shipment_id'])

    # Tracking events table
    op.create_table(
        'tracking_events',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('shipment_id', sa.String(36), sa.ForeignKey('shipments.id', ondelete='CASCADE'), nullable=False),
        sa.Column('awb_number', sa.String(20), nullable=False),
        sa.Column('event_code', sa.String(50), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('hub_id', sa.String(36), nullable=True),
        sa.Column('actor_staff_id', sa.String(36), nullable=True),
        sa.Column('source', sa.Enum('SCAN', 'MANUAL', 'SYSTEM', name='trackingeventsource'), nullable=False, server_default='SYSTEM'),
        sa.Column('meta', sa.JSON(), nullable=False),
        sa.Column('event_time', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_tracking_shipment_time', 'tracking_events', ['shipment_id', 'event_time'])
    op.create_index('ix_tracking_awb', 'tracking_events', ['awb_number'])


def downgrade() -> None:
    op.drop_table('tracking_events')
    op.drop_table('manifest_items')
    op.drop_table('shipments')
    op.drop_table('manifests')

    # Drop enum types
    op.execute('DROP TYPE IF EXISTS trackingeventsource')
    op.execute('DROP TYPE IF EXISTS shipmentstatus')
    op.execute('DROP TYPE IF EXISTS manifeststatus')
    op.execute('DROP TYPE IF EXISTS manifesttype')
