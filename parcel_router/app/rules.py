# parcel_router/app/rules.py
"""
Department assignment.

Weight rules are mutually exclusive size classes: the first matching rule
(ordered by min_value, then id) wins. Value rules are cumulative add-ons:
every matching rule contributes its department. When no configured rule
matches, fixed thresholds decide (Mail/Regular/Heavy by weight, Insurance
above 1000 by value).
"""

from decimal import Decimal
from typing import List, Optional

import structlog

from . import constants
from . import validation as guard
from .errors import NotFoundError
from .models import BusinessRule, Department, Parcel, ParcelStatus, RuleKind, department_names
from .stores import BusinessRuleStore, DepartmentStore, ParcelStore

logger = structlog.get_logger(__name__)


def fallback_weight_department(weight: Decimal) -> str:
    if weight <= constants.MAIL_WEIGHT_THRESHOLD:
        return constants.MAIL
    if weight <= constants.REGULAR_WEIGHT_THRESHOLD:
        return constants.REGULAR
    return constants.HEAVY


def requires_insurance_approval(value) -> bool:
    return guard.to_decimal(value, "Value") > constants.INSURANCE_VALUE_THRESHOLD


def sort_rules(rules: List[BusinessRule]) -> List[BusinessRule]:
    return sorted(rules, key=lambda r: (r.min_value, r.id))


class DepartmentRuleEngine:
    def __init__(self, departments: DepartmentStore, rules: BusinessRuleStore,
                 parcels: Optional[ParcelStore] = None):
        self.departments = departments
        self.rules = rules
        self.parcels = parcels

    def requires_insurance_approval(self, value) -> bool:
        return requires_insurance_approval(value)

    def determine_departments(self, weight, value) -> List[Department]:
        """Departments for a parcel of this weight and value, unique by id, weight first."""
        weight = guard.to_decimal(weight, "Weight")
        value = guard.to_decimal(value, "Value")

        result: List[Department] = []
        seen = set()
        for department in self._weight_departments(weight) + self._value_departments(value):
            if department.id not in seen:
                seen.add(department.id)
                result.append(department)

        logger.debug("departments_determined", weight=str(weight), value=str(value),
                     departments=department_names(result))
        return result

    def departments_for_parcel(self, parcel_id: str) -> List[Department]:
        parcel = self._get_parcel(parcel_id)
        return self.determine_departments(parcel.weight, parcel.value)

    def parcel_requires_insurance(self, parcel_id: str) -> bool:
        return self._get_parcel(parcel_id).requires_insurance_approval

    def assign_departments(self, parcel: Parcel) -> List[Department]:
        """Attach the determined departments to ``parcel`` and advance its status."""
        parcel.update_status(ParcelStatus.PROCESSING)
        departments = self.determine_departments(parcel.weight, parcel.value)
        for department in departments:
            parcel.assign_department(department)

        if parcel.requires_insurance_approval:
            parcel.update_status(ParcelStatus.INSURANCE_APPROVAL_REQUIRED)
        else:
            parcel.update_status(ParcelStatus.ASSIGNED_TO_DEPARTMENT)

        logger.info("parcel_assigned", parcel_id=parcel.id, status=parcel.status.value,
                    departments=department_names(departments))
        return departments

    def reassign_departments(self, parcel_id: str) -> Parcel:
        """Recompute a stored parcel's departments from current rules and persist it."""
        parcel = self._get_parcel(parcel_id)
        parcel.clear_departments()
        self.assign_departments(parcel)
        return self.parcels.update(parcel)

    def reassign_container(self, container_id: str) -> List[Parcel]:
        """Re-run assignment for every stored parcel of a container, in position order."""
        parcels = self.parcels.get_by_container(container_id) if self.parcels is not None else []
        return [self.reassign_departments(p.id) for p in parcels]

    def add_department(self, parcel_id: str, department_id: str) -> Parcel:
        """Manually attach one department; a department already assigned is left as is."""
        parcel = self._get_parcel(parcel_id)
        department = self._get_department(department_id)
        if parcel.assign_department(department):
            logger.info("department_added", parcel_id=parcel.id, department=department.name)
        return self.parcels.update(parcel)

    def remove_department(self, parcel_id: str, department_id: str) -> Parcel:
        parcel = self._get_parcel(parcel_id)
        department = self._get_department(department_id)
        if parcel.remove_department(department):
            logger.info("department_removed", parcel_id=parcel.id, department=department.name)
        return self.parcels.update(parcel)

    # ---------------------------
    # internals
    # ---------------------------
    def _get_parcel(self, parcel_id: str) -> Parcel:
        parcel = self.parcels.get_by_id(parcel_id) if self.parcels is not None else None
        if parcel is None:
            raise NotFoundError("Parcel", parcel_id)
        return parcel

    def _get_department(self, department_id: str) -> Department:
        department = self.departments.get_by_id(department_id)
        if department is None:
            raise NotFoundError("Department", department_id)
        return department

    def _active_department(self, name: str) -> Optional[Department]:
        department = self.departments.get_by_name(name)
        if department is None or not department.is_active:
            logger.debug("department_skipped", department=name,
                         reason="missing" if department is None else "inactive")
            return None
        return department

    def _weight_departments(self, weight: Decimal) -> List[Department]:
        for rule in sort_rules(self.rules.get_active_rules_by_kind(RuleKind.WEIGHT)):
            if rule.matches(weight):
                department = self._active_department(rule.target_department)
                if department is not None:
                    return [department]
                # matched rule points nowhere usable -> fixed thresholds
                break

        department = self._active_department(fallback_weight_department(weight))
        return [department] if department is not None else []

    def _value_departments(self, value: Decimal) -> List[Department]:
        matched = [r for r in sort_rules(self.rules.get_active_rules_by_kind(RuleKind.VALUE))
                   if r.matches(value)]
        if matched:
            found = (self._active_department(r.target_department) for r in matched)
            return [d for d in found if d is not None]

        if value > constants.INSURANCE_VALUE_THRESHOLD:
            department = self._active_department(constants.INSURANCE)
            return [department] if department is not None else []
        return []
