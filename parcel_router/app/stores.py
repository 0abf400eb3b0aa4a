# parcel_router/app/stores.py
"""
Store contracts consumed by the rule engine and the importer, plus the
dict-backed implementations used for tests and the default wiring.

Lookups return ``None`` when nothing matches; write failures raise.
"""

import threading
from typing import Dict, List, Optional, Protocol

from .errors import StorageFailureError
from .models import BusinessRule, Container, Department, Parcel, RuleKind


class ParcelStore(Protocol):
    def get_by_id(self, parcel_id: str) -> Optional[Parcel]: ...

    def add(self, parcel: Parcel) -> Parcel: ...

    def update(self, parcel: Parcel) -> Parcel: ...

    def get_by_container(self, container_id: str) -> List[Parcel]: ...


class DepartmentStore(Protocol):
    def get_by_name(self, name: str) -> Optional[Department]: ...

    def get_by_id(self, department_id: str) -> Optional[Department]: ...

    def get_active(self) -> List[Department]: ...


class BusinessRuleStore(Protocol):
    def get_active_rules_by_kind(self, kind: RuleKind) -> List[BusinessRule]: ...


class ContainerStore(Protocol):
    def get_by_business_id(self, business_id: str) -> Optional[Container]: ...

    def add(self, container: Container) -> Container: ...

    def update(self, container: Container) -> Container: ...

    def delete(self, container_id: str) -> None: ...


# ---------------------------
# In-memory implementations
# ---------------------------
class InMemoryParcelStore:
    def __init__(self):
        self._lock = threading.Lock()
        self._parcels: Dict[str, Parcel] = {}

    def get_by_id(self, parcel_id: str) -> Optional[Parcel]:
        with self._lock:
            return self._parcels.get(parcel_id)

    def add(self, parcel: Parcel) -> Parcel:
        with self._lock:
            if parcel.id in self._parcels:
                raise StorageFailureError(f"parcel {parcel.id} already exists")
            self._parcels[parcel.id] = parcel
        return parcel

    def update(self, parcel: Parcel) -> Parcel:
        with self._lock:
            if parcel.id not in self._parcels:
                raise StorageFailureError(f"parcel {parcel.id} does not exist")
            self._parcels[parcel.id] = parcel
        return parcel

    def get_by_container(self, container_id: str) -> List[Parcel]:
        with self._lock:
            rows = [p for p in self._parcels.values()
                    if p.container is not None and p.container.id == container_id]
        return sorted(rows, key=lambda p: p.position)

    def get_all(self) -> List[Parcel]:
        with self._lock:
            return list(self._parcels.values())


class InMemoryDepartmentStore:
    def __init__(self):
        self._lock = threading.Lock()
        self._departments: Dict[str, Department] = {}
        self._name_to_id: Dict[str, str] = {}

    def get_by_name(self, name: str) -> Optional[Department]:
        with self._lock:
            department_id = self._name_to_id.get(name)
            return self._departments.get(department_id) if department_id else None

    def get_by_id(self, department_id: str) -> Optional[Department]:
        with self._lock:
            return self._departments.get(department_id)

    def get_active(self) -> List[Department]:
        with self._lock:
            return [d for d in self._departments.values() if d.is_active]

    def get_all(self) -> List[Department]:
        with self._lock:
            return list(self._departments.values())

    def add(self, department: Department) -> Department:
        with self._lock:
            if department.name in self._name_to_id:
                raise StorageFailureError(f"department name '{department.name}' already exists")
            self._departments[department.id] = department
            self._name_to_id[department.name] = department.id
        return department


class InMemoryBusinessRuleStore:
    def __init__(self):
        self._lock = threading.Lock()
        self._rules: Dict[str, BusinessRule] = {}

    def get_active_rules_by_kind(self, kind: RuleKind) -> List[BusinessRule]:
        with self._lock:
            return [r for r in self._rules.values() if r.kind == kind and r.is_active]

    def get_all(self) -> List[BusinessRule]:
        with self._lock:
            return list(self._rules.values())

    def add(self, rule: BusinessRule) -> BusinessRule:
        with self._lock:
            self._rules[rule.id] = rule
        return rule


class InMemoryContainerStore:
    def __init__(self):
        self._lock = threading.Lock()
        self._containers: Dict[str, Container] = {}
        self._business_to_id: Dict[str, str] = {}

    def get_by_business_id(self, business_id: str) -> Optional[Container]:
        with self._lock:
            container_id = self._business_to_id.get(business_id)
            return self._containers.get(container_id) if container_id else None

    def add(self, container: Container) -> Container:
        with self._lock:
            if container.business_id in self._business_to_id:
                raise StorageFailureError(f"container {container.business_id} already exists")
            self._containers[container.id] = container
            self._business_to_id[container.business_id] = container.id
        return container

    def update(self, container: Container) -> Container:
        with self._lock:
            if container.id not in self._containers:
                raise StorageFailureError(f"container {container.business_id} does not exist")
            self._containers[container.id] = container
        return container

    def delete(self, container_id: str) -> None:
        with self._lock:
            container = self._containers.pop(container_id, None)
            if container is not None:
                self._business_to_id.pop(container.business_id, None)

    def get_all(self) -> List[Container]:
        with self._lock:
            return list(self._containers.values())
