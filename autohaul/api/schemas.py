"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from autohaul.domain.enums import (
    Carrier,
    RouteStatus,
    StopStatus,
    StopType,
    TransportJobStatus,
    TruckCapacity,
    TruckStatus,
    VehicleStatus,
    parse_status,
)


def _parse(enum_cls):
    """``mode="before"`` validator accepting values, labels and aliases."""

    def validate(cls, raw):
        if raw is None:
            return raw
        return parse_status(enum_cls, raw)

    return validate


# ── Requests ──────────────────────────────────────────────────────────


class VehicleCreateRequest(BaseModel):
    vin: Optional[str] = Field(None, min_length=11, max_length=17)
    year: Optional[int] = Field(None, ge=1900, le=2100)
    make: Optional[str] = None
    model: Optional[str] = None
    purchase_source: Optional[str] = None
    purchase_date: Optional[datetime] = None
    purchase_price: Optional[float] = Field(None, ge=0)
    buyer_name: Optional[str] = None
    pickup_location_name: Optional[str] = None
    pickup_city: Optional[str] = None
    pickup_state: Optional[str] = None
    pickup_zip: Optional[str] = None
    drop_location_name: Optional[str] = None
    drop_city: Optional[str] = None
    drop_state: Optional[str] = None
    drop_zip: Optional[str] = None
    twic_required: bool = False

    @field_validator("vin")
    @classmethod
    def upper_vin(cls, v: Optional[str]) -> Optional[str]:
        return v.upper() if v else v


class TruckCreateRequest(BaseModel):
    truck_number: Optional[str] = None
    license_plate: Optional[str] = None
    make: Optional[str] = None
    model: Optional[str] = None
    year: Optional[int] = Field(None, ge=1900, le=2100)
    capacity: TruckCapacity = TruckCapacity.SINGLE
    status: TruckStatus = TruckStatus.AVAILABLE
    notes: Optional[str] = None

    parse_capacity = field_validator("capacity", mode="before")(_parse(TruckCapacity))
    parse_status = field_validator("status", mode="before")(_parse(TruckStatus))


class TransportJobCreateRequest(BaseModel):
    vehicle_id: int
    carrier: Carrier = Carrier.PTG
    external_carrier_name: Optional[str] = None
    planned_pickup_at: Optional[datetime] = None
    planned_delivery_at: Optional[datetime] = None
    carrier_payment: Optional[float] = Field(None, ge=0)

    parse_carrier = field_validator("carrier", mode="before")(_parse(Carrier))


class JobAssignRequest(BaseModel):
    driver_id: int
    truck_id: int


class RouteStopInput(BaseModel):
    stop_type: StopType
    transport_job_id: Optional[int] = None
    location_name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    scheduled_date: Optional[datetime] = None
    scheduled_time_start: Optional[datetime] = None
    scheduled_time_end: Optional[datetime] = None
    notes: Optional[str] = None

    parse_stop_type = field_validator("stop_type", mode="before")(_parse(StopType))


class RouteCreateRequest(BaseModel):
    driver_id: int
    truck_id: int
    planned_start_at: Optional[datetime] = None
    planned_end_at: Optional[datetime] = None
    stops: list[RouteStopInput] = Field(..., min_length=1)
    selected_job_ids: list[int] = Field(
        default_factory=list,
        description="Jobs to dispatch on this route in addition to those on its stops.",
    )


class RouteStatusRequest(BaseModel):
    status: RouteStatus

    parse_status = field_validator("status", mode="before")(_parse(RouteStatus))


class PhotoInput(BaseModel):
    url: str = Field(..., max_length=500)
    taken_at: Optional[datetime] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    notes: Optional[str] = None


class StopUpdateRequest(BaseModel):
    status: StopStatus
    notes: Optional[str] = None
    checked_items: list[str] = Field(
        default_factory=list,
        description="Checklist items to tick off, matched by their text.",
    )
    photos: list[PhotoInput] = Field(default_factory=list)

    parse_status = field_validator("status", mode="before")(_parse(StopStatus))


class ChecklistTickInput(BaseModel):
    item: str
    notes: Optional[str] = None


class JobEvidenceRequest(BaseModel):
    """Pickup or delivery submission for a directly assigned job."""

    checklist: list[ChecklistTickInput] = Field(
        default_factory=list,
        description="Checklist items to tick off, matched by their text.",
    )
    photos: list[PhotoInput] = Field(default_factory=list)
    bill_of_lading: Optional[str] = Field(None, max_length=500)


class RemoveJobRequest(BaseModel):
    transport_job_id: int


# ── Responses ─────────────────────────────────────────────────────────


class VehicleResponse(BaseModel):
    id: int
    vin: Optional[str] = None
    year: Optional[int] = None
    make: Optional[str] = None
    model: Optional[str] = None
    status: VehicleStatus
    transport_job_id: Optional[int] = None

    model_config = {"from_attributes": True}


class TruckResponse(BaseModel):
    id: int
    truck_number: Optional[str] = None
    license_plate: Optional[str] = None
    capacity: TruckCapacity
    status: TruckStatus
    current_driver_id: Optional[int] = None

    model_config = {"from_attributes": True}


class TransportJobResponse(BaseModel):
    id: int
    job_number: Optional[str] = None
    vehicle_id: int
    status: TransportJobStatus
    carrier: Carrier
    driver_id: Optional[int] = None
    truck_id: Optional[int] = None
    route_id: Optional[int] = None
    actual_pickup_at: Optional[datetime] = None
    actual_delivery_at: Optional[datetime] = None
    pickup_checklist: list[dict] = []
    delivery_checklist: list[dict] = []
    pickup_photos: list[dict] = []
    delivery_photos: list[dict] = []
    bill_of_lading: Optional[str] = None

    model_config = {"from_attributes": True}


class RouteStopResponse(BaseModel):
    id: int
    sequence: int
    stop_type: StopType
    transport_job_id: Optional[int] = None
    status: StopStatus
    location_name: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    actual_at: Optional[datetime] = None
    checklist: list[dict] = []
    photos: list[dict] = []
    notes: Optional[str] = None

    model_config = {"from_attributes": True}


class RouteResponse(BaseModel):
    id: int
    route_number: Optional[str] = None
    driver_id: int
    truck_id: int
    status: RouteStatus
    planned_start_at: Optional[datetime] = None
    planned_end_at: Optional[datetime] = None
    actual_start_at: Optional[datetime] = None
    actual_end_at: Optional[datetime] = None
    stops: list[RouteStopResponse] = []

    model_config = {"from_attributes": True}


class HealthResponse(BaseModel):
    status: str = "ok"
