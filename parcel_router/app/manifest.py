# parcel_router/app/manifest.py
# container manifest (XML) -> pydantic models
import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional, Tuple, Union

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import ValidationError

DedupKey = Tuple[str, Decimal, Decimal]


class AddressIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    street: str = Field("", alias="Street")
    house_number: str = Field("", alias="HouseNumber")
    postal_code: str = Field("", alias="PostalCode")
    city: str = Field("", alias="City")


class RecipientIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field("", alias="Name")
    address: AddressIn = Field(default_factory=AddressIn, alias="Address")


class ParcelIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    recipient: RecipientIn = Field(default_factory=RecipientIn, alias="Recipient")
    weight: Decimal = Field(alias="Weight")
    value: Decimal = Field(alias="Value")

    @property
    def dedup_key(self) -> DedupKey:
        return (self.recipient.name, self.weight, self.value)


class ContainerManifest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field("", alias="Id")
    shipping_date: datetime = Field(alias="ShippingDate")
    parcels: List[ParcelIn] = Field(default_factory=list, alias="Parcels")

    @field_validator("shipping_date")
    @classmethod
    def _naive_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    def unique_parcels(self) -> Tuple[List[ParcelIn], int]:
        """Parcels in document order with later duplicates dropped, plus the number dropped."""
        seen = set()
        unique: List[ParcelIn] = []
        for parcel in self.parcels:
            if parcel.dedup_key in seen:
                continue
            seen.add(parcel.dedup_key)
            unique.append(parcel)
        return unique, len(self.parcels) - len(unique)


# ---------------------------
# XML parsing
# ---------------------------
def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _child(element: ET.Element, *names: str) -> Optional[ET.Element]:
    for child in element:
        if _local(child.tag) in names:
            return child
    return None


def _text(element: Optional[ET.Element], *names: str) -> str:
    if element is None:
        return ""
    child = _child(element, *names)
    if child is None or child.text is None:
        return ""
    return child.text.strip()


def _parcel_dict(element: ET.Element) -> dict:
    # the producer spells it "Receipient"
    recipient = _child(element, "Receipient", "Recipient")
    address = _child(recipient, "Address") if recipient is not None else None
    return {
        "Recipient": {
            "Name": _text(recipient, "Name"),
            "Address": {
                "Street": _text(address, "Street"),
                "HouseNumber": _text(address, "HouseNumber"),
                "PostalCode": _text(address, "PostalCode"),
                "City": _text(address, "City"),
            },
        },
        "Weight": _text(element, "Weight"),
        "Value": _text(element, "Value"),
    }


def parse_manifest(raw: Union[bytes, str]) -> ContainerManifest:
    if isinstance(raw, str):
        raw = raw.encode("utf-8")
    if not raw or not raw.strip():
        raise ValidationError("Manifest content cannot be empty")

    try:
        root = ET.fromstring(raw)
    except ET.ParseError as e:
        raise ValidationError(f"Manifest is not well-formed XML: {e}") from e
    if _local(root.tag) != "Container":
        raise ValidationError(f"Unexpected manifest root element '{_local(root.tag)}'",
                              {"root": _local(root.tag)})

    parcels_element = _child(root, "parcels", "Parcels")
    parcel_elements = [] if parcels_element is None else [
        el for el in parcels_element if _local(el.tag) == "Parcel"]
    data = {
        "Id": _text(root, "Id"),
        "ShippingDate": _text(root, "ShippingDate"),
        "Parcels": [_parcel_dict(el) for el in parcel_elements],
    }

    try:
        return ContainerManifest.model_validate(data)
    except pydantic.ValidationError as e:
        errors = [{"loc": ".".join(str(p) for p in err["loc"]), "msg": err["msg"]} for err in e.errors()]
        raise ValidationError("Manifest does not match the expected schema", {"errors": errors}) from e
