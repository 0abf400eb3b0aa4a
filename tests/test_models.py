"""
Unit tests for the entity model invariants.
"""
from datetime import datetime
from decimal import Decimal

import pytest

from parcel_router.app.errors import ErrorKind, ValidationError
from parcel_router.app.models import (Address, BusinessRule, Container, ContainerStatus, Customer, Department,
                                      Parcel, ParcelStatus, RuleKind)


def make_address(**overrides):
    fields = dict(street="Main Street", number="1", neighborhood="Centrum", city="Amsterdam",
                  state="NH", postal_code="1234AB")
    fields.update(overrides)
    return Address(**fields)


def make_parcel(weight="2", value="100", name="Jan Jansen"):
    return Parcel(recipient=Customer(name=name, address=make_address()), weight=weight, value=value)


class TestAddress:

    def test_postal_code_is_normalized(self):
        address = make_address(postal_code=" 1234ab ")
        assert address.postal_code == "1234AB"

    @pytest.mark.parametrize("postal_code", ["123AB", "12345A", "ABCD12", "1234 AB", ""])
    def test_bad_postal_code_rejected(self, postal_code):
        with pytest.raises(ValidationError) as exc:
            make_address(postal_code=postal_code)
        assert exc.value.kind == ErrorKind.VALIDATION

    def test_required_fields_must_not_be_blank(self):
        with pytest.raises(ValidationError, match="Street cannot be empty"):
            make_address(street="   ")

    def test_complement_may_be_blank_and_country_defaults(self):
        address = make_address(complement=None)
        assert address.complement == ""
        assert address.country == "Netherlands"


class TestCustomer:

    def test_name_required(self):
        with pytest.raises(ValidationError):
            Customer(name="", address=make_address())

    def test_address_required(self):
        with pytest.raises(ValidationError, match="Address cannot be null"):
            Customer(name="Jan", address=None)


class TestParcel:

    def test_new_parcel_is_pending(self):
        parcel = make_parcel()
        assert parcel.status == ParcelStatus.PENDING
        assert parcel.weight == Decimal("2")
        assert parcel.assigned_departments == []

    @pytest.mark.parametrize("weight", ["0", "-1", 0, -0.5])
    def test_weight_must_be_positive(self, weight):
        with pytest.raises(ValidationError, match="Weight must be greater than 0"):
            make_parcel(weight=weight)

    def test_value_cannot_be_negative(self):
        with pytest.raises(ValidationError, match="Value cannot be negative"):
            make_parcel(value="-0.01")

    def test_zero_value_allowed(self):
        assert make_parcel(value="0").value == Decimal("0")

    def test_non_numeric_weight_rejected(self):
        with pytest.raises(ValidationError, match="Weight must be a number"):
            make_parcel(weight="heavy")

    def test_amounts_are_rounded_to_the_stored_scale(self):
        parcel = make_parcel(weight="0.5", value="50")
        assert str(parcel.weight) == "0.500"
        assert str(parcel.value) == "50.00"
        assert make_parcel(value="100.005").value == Decimal("100.01")
        assert make_parcel(weight="1.23449").weight == Decimal("1.234")

    @pytest.mark.parametrize("weight", ["0.0004", "0.00049"])
    def test_weight_that_rounds_to_zero_is_rejected(self, weight):
        with pytest.raises(ValidationError, match="Weight must be greater than 0"):
            make_parcel(weight=weight)

    def test_smallest_storable_weight_is_accepted(self):
        assert make_parcel(weight="0.0005").weight == Decimal("0.001")

    def test_timestamps_are_naive_utc(self):
        parcel = make_parcel()
        assert parcel.created_at.tzinfo is None
        assert parcel.recipient.created_at.tzinfo is None

    def test_insurance_threshold_is_exclusive(self):
        assert not make_parcel(value="1000").requires_insurance_approval
        assert make_parcel(value="1000.01").requires_insurance_approval

    def test_assign_department_is_unique_by_id(self):
        parcel = make_parcel()
        mail = Department(name="Mail")
        assert parcel.assign_department(mail) is True
        assert parcel.assign_department(mail) is False
        assert [d.name for d in parcel.assigned_departments] == ["Mail"]
        assert parcel.updated_at is not None

    def test_remove_department(self):
        parcel = make_parcel()
        mail = Department(name="Mail")
        parcel.assign_department(mail)
        assert parcel.remove_department(mail) is True
        assert parcel.remove_department(mail) is False
        assert parcel.assigned_departments == []

    def test_update_status_touches_timestamp(self):
        parcel = make_parcel()
        parcel.update_status(ParcelStatus.PROCESSING)
        assert parcel.status == ParcelStatus.PROCESSING
        assert parcel.updated_at >= parcel.created_at


class TestDepartment:

    def test_name_required(self):
        with pytest.raises(ValidationError, match="Department name cannot be empty"):
            Department(name=" ")

    def test_description_is_trimmed(self):
        department = Department(name="Mail", description="  small parcels ")
        assert department.description == "small parcels"
        assert department.is_active is True


class TestBusinessRule:

    def test_closed_interval(self):
        rule = BusinessRule(name="Regular", kind=RuleKind.WEIGHT, min_value="1", max_value="10",
                            target_department="Regular")
        assert rule.matches(Decimal("1"))
        assert rule.matches(Decimal("10"))
        assert not rule.matches(Decimal("0.99"))
        assert not rule.matches(Decimal("10.01"))

    def test_unbounded_above(self):
        rule = BusinessRule(name="Heavy", kind=RuleKind.WEIGHT, min_value="10", max_value=None,
                            target_department="Heavy")
        assert rule.matches(Decimal("10000"))

    def test_min_equal_to_max_allowed(self):
        rule = BusinessRule(name="Exact", kind=RuleKind.VALUE, min_value="5", max_value="5",
                            target_department="Customs")
        assert rule.matches(Decimal("5"))

    def test_max_below_min_rejected(self):
        with pytest.raises(ValidationError, match="Maximum value cannot be lower"):
            BusinessRule(name="Broken", kind=RuleKind.WEIGHT, min_value="5", max_value="4",
                         target_department="Mail")

    def test_negative_min_rejected(self):
        with pytest.raises(ValidationError, match="Minimum value cannot be negative"):
            BusinessRule(name="Broken", kind=RuleKind.WEIGHT, min_value="-1", max_value=None,
                         target_department="Mail")

    def test_kind_accepts_plain_string(self):
        rule = BusinessRule(name="Mail", kind="Weight", min_value="0", max_value="1",
                            target_department="Mail")
        assert rule.kind == RuleKind.WEIGHT

    def test_bounds_are_rounded_to_the_stored_scale(self):
        rule = BusinessRule(name="Insurance", kind=RuleKind.VALUE, min_value="1000.0104", max_value="2000.0006",
                            target_department="Insurance")
        assert (rule.min_value, rule.max_value) == (Decimal("1000.010"), Decimal("2000.001"))


class TestContainer:

    def test_business_id_required(self):
        with pytest.raises(ValidationError, match="Container id cannot be empty"):
            Container(business_id="", shipping_date=datetime(2024, 1, 1))

    @pytest.mark.parametrize("shipping_date", [None, datetime.min])
    def test_shipping_date_required(self, shipping_date):
        with pytest.raises(ValidationError, match="Shipping date must be set"):
            Container(business_id="C1", shipping_date=shipping_date)

    def test_totals(self):
        container = Container(business_id="C1", shipping_date=datetime(2024, 1, 1))
        container.add_parcel(make_parcel(weight="0.5", value="50"))
        container.add_parcel(make_parcel(weight="5", value="1500"))
        container.update_status(ContainerStatus.PROCESSED)

        assert container.total_parcels == 2
        assert container.total_weight == Decimal("5.5")
        assert container.total_value == Decimal("1550")
        assert container.parcels_requiring_insurance == 1
        assert [p.position for p in container.parcels] == [0, 1]
        assert container.status == ContainerStatus.PROCESSED
