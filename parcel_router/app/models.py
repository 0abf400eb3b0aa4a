# parcel_router/app/models.py
import enum
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, Integer, Numeric, String, Table, Text
from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy.orm import relationship, validates

from . import validation as guard
from .constants import INSURANCE_VALUE_THRESHOLD, RULE_PLACES, VALUE_PLACES, WEIGHT_PLACES
from .db import Base
from .errors import ValidationError


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    # naive UTC, like shipping_date; the columns store no offset
    return datetime.now(timezone.utc).replace(tzinfo=None)


class ParcelStatus(str, enum.Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    INSURANCE_APPROVAL_REQUIRED = "InsuranceApprovalRequired"
    INSURANCE_APPROVED = "InsuranceApproved"
    INSURANCE_REJECTED = "InsuranceRejected"
    ASSIGNED_TO_DEPARTMENT = "AssignedToDepartment"
    PROCESSED = "Processed"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    FAILED = "Failed"


class ContainerStatus(str, enum.Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    PROCESSED = "Processed"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    FAILED = "Failed"


class RuleKind(str, enum.Enum):
    WEIGHT = "Weight"
    VALUE = "Value"


# departments assigned to a parcel
parcel_departments = Table(
    "parcel_departments",
    Base.metadata,
    Column("parcel_id", String(36), ForeignKey("parcels.id"), primary_key=True),
    Column("department_id", String(36), ForeignKey("departments.id"), primary_key=True),
)


class Address(Base):
    __tablename__ = "addresses"
    id = Column(String(36), primary_key=True)
    street = Column(String, nullable=False)
    number = Column(String, nullable=False)
    complement = Column(String, nullable=False, default="")
    neighborhood = Column(String, nullable=False)
    city = Column(String, nullable=False)
    state = Column(String, nullable=False)
    postal_code = Column(String(6), nullable=False)
    country = Column(String, nullable=False)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=True)

    def __init__(self, street: str, number: str, neighborhood: str, city: str, state: str,
                 postal_code: str, complement: str = "", country: str = "Netherlands"):
        super().__init__(id=_new_id(), street=street, number=number, complement=complement,
                         neighborhood=neighborhood, city=city, state=state,
                         postal_code=postal_code, country=country, created_at=_utcnow())

    @validates("street", "number", "neighborhood", "city", "state", "country")
    def _check_required(self, key, value):
        return guard.required(value, key.capitalize())

    @validates("complement")
    def _trim_complement(self, key, value):
        return guard.trim_or_empty(value)

    @validates("postal_code")
    def _check_postal_code(self, key, value):
        return guard.postcode(value, "Postal code")


class Customer(Base):
    __tablename__ = "customers"
    id = Column(String(36), primary_key=True)
    name = Column(String, nullable=False, index=True)
    address_id = Column(String(36), ForeignKey("addresses.id"), nullable=False)
    address = relationship("Address", lazy="joined")
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=True)

    def __init__(self, name: str, address: Address):
        super().__init__(id=_new_id(), name=name, address=address, created_at=_utcnow())

    @validates("name")
    def _check_name(self, key, value):
        return guard.required(value, "Name")

    @validates("address")
    def _check_address(self, key, value):
        return guard.not_none(value, "Address")


class Department(Base):
    __tablename__ = "departments"
    id = Column(String(36), primary_key=True)
    name = Column(String, unique=True, index=True, nullable=False)
    description = Column(Text, nullable=False, default="")
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=True)

    def __init__(self, name: str, description: str = "", is_active: bool = True):
        super().__init__(id=_new_id(), name=name, description=description,
                         is_active=is_active, created_at=_utcnow())

    @validates("name")
    def _check_name(self, key, value):
        return guard.required(value, "Department name")

    @validates("description")
    def _trim_description(self, key, value):
        return guard.trim_or_empty(value)

    def __repr__(self):
        return f"<Department(name='{self.name}', active={self.is_active})>"


class BusinessRule(Base):
    """
    Configurable routing rule: parcels whose weight (or value) falls inside
    [min_value, max_value] go to ``target_department``. A missing max_value
    means the interval is unbounded above.
    """
    __tablename__ = "business_rules"
    id = Column(String(36), primary_key=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    kind = Column(Enum(RuleKind), index=True, nullable=False)
    min_value = Column(Numeric(14, RULE_PLACES), nullable=False)
    max_value = Column(Numeric(14, RULE_PLACES), nullable=True)
    target_department = Column(String, nullable=False)
    is_active = Column(Boolean, index=True, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=True)

    def __init__(self, name: str, kind: RuleKind, min_value, max_value, target_department: str,
                 description: str = "", is_active: bool = True):
        min_value, max_value = self._check_range(min_value, max_value)
        super().__init__(id=_new_id(), name=name, description=description, kind=RuleKind(kind),
                         min_value=min_value, max_value=max_value,
                         target_department=target_department, is_active=is_active,
                         created_at=_utcnow())

    @staticmethod
    def _check_range(min_value, max_value):
        low = guard.not_negative(min_value, "Minimum value", RULE_PLACES)
        if max_value is None:
            return low, None
        high = guard.quantize(guard.to_decimal(max_value, "Maximum value"), RULE_PLACES, "Maximum value")
        if high < low:
            raise ValidationError("Maximum value cannot be lower than minimum value",
                                  {"field": "Maximum value"})
        return low, high

    @validates("name")
    def _check_name(self, key, value):
        return guard.required(value, "Name")

    @validates("target_department")
    def _check_target(self, key, value):
        return guard.required(value, "Department name")

    @validates("description")
    def _trim_description(self, key, value):
        return guard.trim_or_empty(value)

    def matches(self, amount: Decimal) -> bool:
        if amount < self.min_value:
            return False
        return self.max_value is None or amount <= self.max_value

    def __repr__(self):
        upper = "inf" if self.max_value is None else self.max_value
        return f"<BusinessRule({self.kind.value} [{self.min_value}, {upper}] -> '{self.target_department}')>"


class Parcel(Base):
    __tablename__ = "parcels"
    id = Column(String(36), primary_key=True)
    recipient_id = Column(String(36), ForeignKey("customers.id"), nullable=False)
    recipient = relationship("Customer", lazy="joined")
    weight = Column(Numeric(12, WEIGHT_PLACES), nullable=False)
    value = Column(Numeric(14, VALUE_PLACES), nullable=False)
    status = Column(Enum(ParcelStatus), index=True, nullable=False, default=ParcelStatus.PENDING)
    assigned_departments = relationship("Department", secondary=parcel_departments, lazy="selectin")
    container_id = Column(String(36), ForeignKey("containers.id"), index=True, nullable=True)
    container = relationship("Container", back_populates="parcels")
    position = Column(Integer, nullable=True)  # order inside the container
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=True)

    def __init__(self, recipient: Customer, weight, value):
        super().__init__(id=_new_id(), recipient=recipient, weight=weight, value=value,
                         status=ParcelStatus.PENDING, created_at=_utcnow())

    @validates("recipient")
    def _check_recipient(self, key, value):
        return guard.not_none(value, "Recipient")

    @validates("weight")
    def _check_weight(self, key, value):
        return guard.greater_than(value, Decimal(0), "Weight", WEIGHT_PLACES)

    @validates("value")
    def _check_value(self, key, value):
        return guard.not_negative(value, "Value", VALUE_PLACES)

    @property
    def requires_insurance_approval(self) -> bool:
        return self.value > INSURANCE_VALUE_THRESHOLD

    def assign_department(self, department: Department) -> bool:
        guard.not_none(department, "Department")
        if any(d.id == department.id for d in self.assigned_departments):
            return False
        self.assigned_departments.append(department)
        self.updated_at = _utcnow()
        return True

    def remove_department(self, department: Department) -> bool:
        guard.not_none(department, "Department")
        for assigned in self.assigned_departments:
            if assigned.id == department.id:
                self.assigned_departments.remove(assigned)
                self.updated_at = _utcnow()
                return True
        return False

    def clear_departments(self):
        if self.assigned_departments:
            self.assigned_departments.clear()
            self.updated_at = _utcnow()

    def update_status(self, status: ParcelStatus):
        self.status = status
        self.updated_at = _utcnow()

    def __repr__(self):
        return f"<Parcel(id={self.id}, weight={self.weight}, value={self.value}, status='{self.status.value}')>"


class Container(Base):
    __tablename__ = "containers"
    id = Column(String(36), primary_key=True)
    business_id = Column(String, unique=True, index=True, nullable=False)
    shipping_date = Column(DateTime, nullable=False)
    status = Column(Enum(ContainerStatus), index=True, nullable=False, default=ContainerStatus.PENDING)
    parcels = relationship("Parcel", back_populates="container", order_by="Parcel.position",
                           collection_class=ordering_list("position"))
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=True)

    def __init__(self, business_id: str, shipping_date: Optional[datetime]):
        super().__init__(id=_new_id(), business_id=business_id, shipping_date=shipping_date,
                         status=ContainerStatus.PENDING, created_at=_utcnow())

    @validates("business_id")
    def _check_business_id(self, key, value):
        return guard.required(value, "Container id")

    @validates("shipping_date")
    def _check_shipping_date(self, key, value):
        return guard.not_default_date(value, "Shipping date")

    @property
    def total_parcels(self) -> int:
        return len(self.parcels)

    @property
    def total_weight(self) -> Decimal:
        return sum((p.weight for p in self.parcels), Decimal(0))

    @property
    def total_value(self) -> Decimal:
        return sum((p.value for p in self.parcels), Decimal(0))

    @property
    def parcels_requiring_insurance(self) -> int:
        return sum(1 for p in self.parcels if p.requires_insurance_approval)

    def add_parcel(self, parcel: Parcel):
        guard.not_none(parcel, "Parcel")
        self.parcels.append(parcel)
        self.updated_at = _utcnow()

    def update_status(self, status: ContainerStatus):
        self.status = status
        self.updated_at = _utcnow()

    def __repr__(self):
        return f"<Container(business_id='{self.business_id}', parcels={len(self.parcels)})>"


def department_names(departments: List[Department]) -> List[str]:
    return [d.name for d in departments]
