"""
SQLAlchemy ORM models.

Tables
------
* ``vehicles``        -- vehicles purchased for resale
* ``trucks``          -- car-hauler trucks with capacity and availability
* ``transport_jobs``  -- one vehicle moved by one carrier
* ``routes``          -- a driver + truck itinerary
* ``route_stops``     -- ordered stops owned by a route

References between independent entities (vehicle -> job, job -> route,
job / route -> truck, stop -> job, truck -> driver) are plain id columns
without a foreign key: they are weak links resolved by lookup.  Only
ownership (job -> vehicle, stop -> route) is enforced by the database.

Indexes
-------
* **B-Tree** on every ``status`` column and on the id columns the status
  engine filters by (``route_id``, ``truck_id``, ``vehicle_id``).
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import relationship

from .database import Base
from autohaul.domain.enums import (
    Carrier,
    RouteStatus,
    StopStatus,
    StopType,
    TransportJobStatus,
    TruckCapacity,
    TruckStatus,
    VehicleStatus,
)


class VehicleModel(Base):
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Identity
    vin = Column(String(17), nullable=True)
    year = Column(Integer, nullable=True)
    make = Column(String(60), nullable=True)
    model = Column(String(60), nullable=True)

    # Purchase
    purchase_source = Column(String(120), nullable=True)
    purchase_date = Column(DateTime(timezone=True), nullable=True)
    purchase_price = Column(Float, nullable=True)
    buyer_name = Column(String(120), nullable=True)

    # Pickup
    pickup_location_name = Column(String(255), nullable=True)
    pickup_city = Column(String(120), nullable=True)
    pickup_state = Column(String(40), nullable=True)
    pickup_zip = Column(String(20), nullable=True)
    pickup_contact_name = Column(String(120), nullable=True)
    pickup_contact_phone = Column(String(40), nullable=True)
    pickup_window_start = Column(DateTime(timezone=True), nullable=True)
    pickup_window_end = Column(DateTime(timezone=True), nullable=True)
    twic_required = Column(Boolean, default=False)

    # Drop
    drop_destination_type = Column(String(60), nullable=True)
    drop_location_name = Column(String(255), nullable=True)
    drop_city = Column(String(120), nullable=True)
    drop_state = Column(String(40), nullable=True)
    drop_zip = Column(String(20), nullable=True)
    drop_contact_name = Column(String(120), nullable=True)
    drop_contact_phone = Column(String(40), nullable=True)
    drop_window_start = Column(DateTime(timezone=True), nullable=True)
    drop_window_end = Column(DateTime(timezone=True), nullable=True)

    status = Column(
        Enum(VehicleStatus),
        default=VehicleStatus.PURCHASED_INTAKE_NEEDED,
        nullable=False,
    )
    transport_job_id = Column(Integer, nullable=True)  # weak back-reference

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_vehicles_vin", "vin"),
        Index("idx_vehicles_status", "status"),
    )


class TruckModel(Base):
    __tablename__ = "trucks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    truck_number = Column(String(40), nullable=True)
    license_plate = Column(String(20), nullable=True)
    make = Column(String(60), nullable=True)
    model = Column(String(60), nullable=True)
    year = Column(Integer, nullable=True)
    capacity = Column(Enum(TruckCapacity), default=TruckCapacity.SINGLE, nullable=False)
    status = Column(Enum(TruckStatus), default=TruckStatus.AVAILABLE, nullable=False)
    current_driver_id = Column(Integer, nullable=True)  # weak link to a driver user
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_trucks_number", "truck_number"),
        Index("idx_trucks_status", "status"),
    )


class TransportJobModel(Base):
    __tablename__ = "transport_jobs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    job_number = Column(String(32), unique=True, nullable=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=False)

    status = Column(
        Enum(TransportJobStatus),
        default=TransportJobStatus.NEEDS_DISPATCH,
        nullable=False,
    )
    carrier = Column(Enum(Carrier), default=Carrier.PTG, nullable=False)
    external_carrier_name = Column(String(120), nullable=True)

    # Central Dispatch
    central_dispatch_load_id = Column(String(64), nullable=True)
    central_dispatch_posted = Column(Boolean, default=False)
    central_dispatch_posted_at = Column(DateTime(timezone=True), nullable=True)

    # Direct assignment
    driver_id = Column(Integer, nullable=True)
    truck_id = Column(Integer, nullable=True)  # weak reference

    # Route membership
    route_id = Column(Integer, nullable=True)  # weak back-reference

    # Scheduling
    planned_pickup_at = Column(DateTime(timezone=True), nullable=True)
    actual_pickup_at = Column(DateTime(timezone=True), nullable=True)
    planned_delivery_at = Column(DateTime(timezone=True), nullable=True)
    actual_delivery_at = Column(DateTime(timezone=True), nullable=True)

    # Evidence
    pickup_checklist = Column(JSON, default=list)
    delivery_checklist = Column(JSON, default=list)
    pickup_photos = Column(JSON, default=list)
    delivery_photos = Column(JSON, default=list)
    bill_of_lading = Column(String(500), nullable=True)

    carrier_payment = Column(Float, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_jobs_vehicle", "vehicle_id"),
        Index("idx_jobs_status", "status"),
        Index("idx_jobs_carrier", "carrier"),
        Index("idx_jobs_route", "route_id"),
        Index("idx_jobs_truck", "truck_id"),
    )


class RouteModel(Base):
    __tablename__ = "routes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    route_number = Column(String(32), unique=True, nullable=True)
    driver_id = Column(Integer, nullable=False)
    truck_id = Column(Integer, nullable=False)  # weak reference

    planned_start_at = Column(DateTime(timezone=True), nullable=True)
    planned_end_at = Column(DateTime(timezone=True), nullable=True)
    actual_start_at = Column(DateTime(timezone=True), nullable=True)
    actual_end_at = Column(DateTime(timezone=True), nullable=True)

    status = Column(Enum(RouteStatus), default=RouteStatus.PLANNED, nullable=False)

    stops = relationship(
        "RouteStopModel",
        back_populates="route",
        cascade="all, delete-orphan",
        order_by="RouteStopModel.sequence",
        lazy="selectin",
    )

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_routes_driver", "driver_id"),
        Index("idx_routes_truck", "truck_id"),
        Index("idx_routes_status", "status"),
    )


class RouteStopModel(Base):
    __tablename__ = "route_stops"

    id = Column(Integer, primary_key=True, autoincrement=True)
    route_id = Column(
        Integer, ForeignKey("routes.id", ondelete="CASCADE"), nullable=False
    )
    sequence = Column(Integer, nullable=False)
    stop_type = Column(Enum(StopType), nullable=False)
    transport_job_id = Column(Integer, nullable=True)  # weak reference
    status = Column(Enum(StopStatus), default=StopStatus.PENDING, nullable=False)

    # Location
    location_name = Column(String(255), nullable=True)
    address = Column(String(255), nullable=True)
    city = Column(String(120), nullable=True)
    state = Column(String(40), nullable=True)
    zip = Column(String(20), nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    scheduled_date = Column(DateTime(timezone=True), nullable=True)
    scheduled_time_start = Column(DateTime(timezone=True), nullable=True)
    scheduled_time_end = Column(DateTime(timezone=True), nullable=True)
    actual_at = Column(DateTime(timezone=True), nullable=True)

    photos = Column(JSON, default=list)
    checklist = Column(JSON, default=list)
    notes = Column(Text, nullable=True)

    route = relationship("RouteModel", back_populates="stops")

    __table_args__ = (
        Index("idx_route_stops_route", "route_id", "sequence"),
        Index("idx_route_stops_job", "transport_job_id"),
    )
