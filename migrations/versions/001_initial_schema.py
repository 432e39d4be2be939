"""Initial schema: vehicles, trucks, transport jobs, routes and stops.

Revision ID: 001
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None

VEHICLE_STATUS = (
    "PURCHASED_INTAKE_NEEDED",
    "INTAKE_COMPLETED",
    "READY_FOR_TRANSPORT",
    "IN_TRANSPORT",
    "DELIVERED",
    "CANCELLED",
)
JOB_STATUS = (
    "NEEDS_DISPATCH",
    "DISPATCHED",
    "IN_TRANSIT",
    "DELIVERED",
    "CANCELLED",
    "EXCEPTION",
)
TRUCK_STATUS = ("AVAILABLE", "IN_USE", "MAINTENANCE", "OUT_OF_SERVICE")
TRUCK_CAPACITY = ("SINGLE", "DOUBLE", "TRIPLE", "QUAD")
CARRIER = ("PTG", "CENTRAL_DISPATCH")
ROUTE_STATUS = ("PLANNED", "IN_PROGRESS", "COMPLETED", "CANCELLED")
STOP_STATUS = ("PENDING", "IN_PROGRESS", "COMPLETED", "SKIPPED")
STOP_TYPE = ("PICKUP", "DROP", "BREAK", "REST")

ENUM_TYPES = (
    "stoptype",
    "stopstatus",
    "routestatus",
    "carrier",
    "transportjobstatus",
    "truckcapacity",
    "truckstatus",
    "vehiclestatus",
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    ]


def upgrade() -> None:
    # ── vehicles ──────────────────────────────────────────────────────
    op.create_table(
        "vehicles",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("vin", sa.String(17), nullable=True),
        sa.Column("year", sa.Integer, nullable=True),
        sa.Column("make", sa.String(60), nullable=True),
        sa.Column("model", sa.String(60), nullable=True),
        sa.Column("purchase_source", sa.String(120), nullable=True),
        sa.Column("purchase_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("purchase_price", sa.Float, nullable=True),
        sa.Column("buyer_name", sa.String(120), nullable=True),
        sa.Column("pickup_location_name", sa.String(255), nullable=True),
        sa.Column("pickup_city", sa.String(120), nullable=True),
        sa.Column("pickup_state", sa.String(40), nullable=True),
        sa.Column("pickup_zip", sa.String(20), nullable=True),
        sa.Column("pickup_contact_name", sa.String(120), nullable=True),
        sa.Column("pickup_contact_phone", sa.String(40), nullable=True),
        sa.Column("pickup_window_start", sa.DateTime(timezone=True), nullable=True),
        sa.Column("pickup_window_end", sa.DateTime(timezone=True), nullable=True),
        sa.Column("twic_required", sa.Boolean, default=False),
        sa.Column("drop_destination_type", sa.String(60), nullable=True),
        sa.Column("drop_location_name", sa.String(255), nullable=True),
        sa.Column("drop_city", sa.String(120), nullable=True),
        sa.Column("drop_state", sa.String(40), nullable=True),
        sa.Column("drop_zip", sa.String(20), nullable=True),
        sa.Column("drop_contact_name", sa.String(120), nullable=True),
        sa.Column("drop_contact_phone", sa.String(40), nullable=True),
        sa.Column("drop_window_start", sa.DateTime(timezone=True), nullable=True),
        sa.Column("drop_window_end", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "status",
            sa.Enum(*VEHICLE_STATUS, name="vehiclestatus"),
            default="PURCHASED_INTAKE_NEEDED",
            nullable=False,
        ),
        sa.Column("transport_job_id", sa.Integer, nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_vehicles_vin", "vehicles", ["vin"])
    op.create_index("idx_vehicles_status", "vehicles", ["status"])

    # ── trucks ────────────────────────────────────────────────────────
    op.create_table(
        "trucks",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("truck_number", sa.String(40), nullable=True),
        sa.Column("license_plate", sa.String(20), nullable=True),
        sa.Column("make", sa.String(60), nullable=True),
        sa.Column("model", sa.String(60), nullable=True),
        sa.Column("year", sa.Integer, nullable=True),
        sa.Column(
            "capacity",
            sa.Enum(*TRUCK_CAPACITY, name="truckcapacity"),
            default="SINGLE",
            nullable=False,
        ),
        sa.Column(
            "status",
            sa.Enum(*TRUCK_STATUS, name="truckstatus"),
            default="AVAILABLE",
            nullable=False,
        ),
        sa.Column("current_driver_id", sa.Integer, nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_trucks_number", "trucks", ["truck_number"])
    op.create_index("idx_trucks_status", "trucks", ["status"])

    # ── transport_jobs ────────────────────────────────────────────────
    op.create_table(
        "transport_jobs",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("job_number", sa.String(32), unique=True, nullable=True),
        sa.Column(
            "vehicle_id", sa.Integer, sa.ForeignKey("vehicles.id"), nullable=False
        ),
        sa.Column(
            "status",
            sa.Enum(*JOB_STATUS, name="transportjobstatus"),
            default="NEEDS_DISPATCH",
            nullable=False,
        ),
        sa.Column(
            "carrier",
            sa.Enum(*CARRIER, name="carrier"),
            default="PTG",
            nullable=False,
        ),
        sa.Column("external_carrier_name", sa.String(120), nullable=True),
        sa.Column("central_dispatch_load_id", sa.String(64), nullable=True),
        sa.Column("central_dispatch_posted", sa.Boolean, default=False),
        sa.Column(
            "central_dispatch_posted_at", sa.DateTime(timezone=True), nullable=True
        ),
        sa.Column("driver_id", sa.Integer, nullable=True),
        sa.Column("truck_id", sa.Integer, nullable=True),
        sa.Column("route_id", sa.Integer, nullable=True),
        sa.Column("planned_pickup_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("actual_pickup_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("planned_delivery_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("actual_delivery_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("pickup_checklist", sa.JSON, nullable=True),
        sa.Column("delivery_checklist", sa.JSON, nullable=True),
        sa.Column("pickup_photos", sa.JSON, nullable=True),
        sa.Column("delivery_photos", sa.JSON, nullable=True),
        sa.Column("bill_of_lading", sa.String(500), nullable=True),
        sa.Column("carrier_payment", sa.Float, nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_jobs_vehicle", "transport_jobs", ["vehicle_id"])
    op.create_index("idx_jobs_status", "transport_jobs", ["status"])
    op.create_index("idx_jobs_carrier", "transport_jobs", ["carrier"])
    op.create_index("idx_jobs_route", "transport_jobs", ["route_id"])
    op.create_index("idx_jobs_truck", "transport_jobs", ["truck_id"])

    # ── routes ────────────────────────────────────────────────────────
    op.create_table(
        "routes",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("route_number", sa.String(32), unique=True, nullable=True),
        sa.Column("driver_id", sa.Integer, nullable=False),
        sa.Column("truck_id", sa.Integer, nullable=False),
        sa.Column("planned_start_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("planned_end_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("actual_start_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("actual_end_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "status",
            sa.Enum(*ROUTE_STATUS, name="routestatus"),
            default="PLANNED",
            nullable=False,
        ),
        *_timestamps(),
    )
    op.create_index("idx_routes_driver", "routes", ["driver_id"])
    op.create_index("idx_routes_truck", "routes", ["truck_id"])
    op.create_index("idx_routes_status", "routes", ["status"])

    # ── route_stops ───────────────────────────────────────────────────
    op.create_table(
        "route_stops",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "route_id",
            sa.Integer,
            sa.ForeignKey("routes.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("sequence", sa.Integer, nullable=False),
        sa.Column(
            "stop_type", sa.Enum(*STOP_TYPE, name="stoptype"), nullable=False
        ),
        sa.Column("transport_job_id", sa.Integer, nullable=True),
        sa.Column(
            "status",
            sa.Enum(*STOP_STATUS, name="stopstatus"),
            default="PENDING",
            nullable=False,
        ),
        sa.Column("location_name", sa.String(255), nullable=True),
        sa.Column("address", sa.String(255), nullable=True),
        sa.Column("city", sa.String(120), nullable=True),
        sa.Column("state", sa.String(40), nullable=True),
        sa.Column("zip", sa.String(20), nullable=True),
        sa.Column("latitude", sa.Float, nullable=True),
        sa.Column("longitude", sa.Float, nullable=True),
        sa.Column("scheduled_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("scheduled_time_start", sa.DateTime(timezone=True), nullable=True),
        sa.Column("scheduled_time_end", sa.DateTime(timezone=True), nullable=True),
        sa.Column("actual_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("photos", sa.JSON, nullable=True),
        sa.Column("checklist", sa.JSON, nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
    )
    op.create_index(
        "idx_route_stops_route", "route_stops", ["route_id", "sequence"]
    )
    op.create_index("idx_route_stops_job", "route_stops", ["transport_job_id"])


def downgrade() -> None:
    op.drop_table("route_stops")
    op.drop_table("routes")
    op.drop_table("transport_jobs")
    op.drop_table("trucks")
    op.drop_table("vehicles")
    for name in ENUM_TYPES:
        op.execute(f"DROP TYPE IF EXISTS {name}")
