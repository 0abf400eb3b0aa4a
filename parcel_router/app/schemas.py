# parcel_router/app/schemas.py
# response shapes built from the ORM entities
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from .models import Container, ContainerStatus, ParcelStatus


class DepartmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: str
    is_active: bool


class AddressOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    street: str
    number: str
    complement: str
    neighborhood: str
    city: str
    state: str
    postal_code: str
    country: str


class RecipientOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    address: AddressOut


class ParcelOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    recipient: RecipientOut
    weight: Decimal
    value: Decimal
    status: ParcelStatus
    requires_insurance_approval: bool
    assigned_departments: List[DepartmentOut]
    created_at: datetime
    updated_at: Optional[datetime] = None


class ImportResult(BaseModel):
    container_id: str
    shipping_date: datetime
    status: ContainerStatus
    total_parcels: int
    total_weight: Decimal
    total_value: Decimal
    parcels_requiring_insurance: int
    parcels: List[ParcelOut]

    @classmethod
    def from_container(cls, container: Container) -> "ImportResult":
        return cls(
            container_id=container.business_id,
            shipping_date=container.shipping_date,
            status=container.status,
            total_parcels=container.total_parcels,
            total_weight=container.total_weight,
            total_value=container.total_value,
            parcels_requiring_insurance=container.parcels_requiring_insurance,
            parcels=[ParcelOut.model_validate(p) for p in container.parcels],
        )
