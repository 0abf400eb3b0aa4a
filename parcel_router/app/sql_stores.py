# parcel_router/app/sql_stores.py
# SQLAlchemy-backed stores; all four share one Session per request/import
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import StorageFailureError
from .models import BusinessRule, Container, Department, Parcel, RuleKind


class _SqlStore:
    def __init__(self, db: Session):
        self.db = db

    def _commit(self, action: str):
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageFailureError(f"{action} failed: {e}") from e

    def _save(self, obj, action: str):
        self.db.add(obj)
        self._commit(action)
        return obj


class SqlParcelStore(_SqlStore):
    def get_by_id(self, parcel_id: str) -> Optional[Parcel]:
        return self.db.get(Parcel, parcel_id)

    def add(self, parcel: Parcel) -> Parcel:
        return self._save(parcel, "add parcel")

    def update(self, parcel: Parcel) -> Parcel:
        return self._save(parcel, "update parcel")

    def get_by_container(self, container_id: str) -> List[Parcel]:
        return (self.db.query(Parcel)
                .filter(Parcel.container_id == container_id)
                .order_by(Parcel.position)
                .all())


class SqlDepartmentStore(_SqlStore):
    def get_by_name(self, name: str) -> Optional[Department]:
        return self.db.query(Department).filter(Department.name == name).one_or_none()

    def get_by_id(self, department_id: str) -> Optional[Department]:
        return self.db.get(Department, department_id)

    def get_active(self) -> List[Department]:
        return (self.db.query(Department)
                .filter(Department.is_active.is_(True))
                .order_by(Department.name)
                .all())

    def get_all(self) -> List[Department]:
        return self.db.query(Department).order_by(Department.name).all()

    def add(self, department: Department) -> Department:
        return self._save(department, "add department")


class SqlBusinessRuleStore(_SqlStore):
    def get_active_rules_by_kind(self, kind: RuleKind) -> List[BusinessRule]:
        return (self.db.query(BusinessRule)
                .filter(BusinessRule.kind == kind, BusinessRule.is_active.is_(True))
                .all())

    def get_all(self) -> List[BusinessRule]:
        return self.db.query(BusinessRule).all()

    def add(self, rule: BusinessRule) -> BusinessRule:
        return self._save(rule, "add business rule")


class SqlContainerStore(_SqlStore):
    def get_by_business_id(self, business_id: str) -> Optional[Container]:
        return self.db.query(Container).filter(Container.business_id == business_id).one_or_none()

    def add(self, container: Container) -> Container:
        return self._save(container, "add container")

    def update(self, container: Container) -> Container:
        return self._save(container, "update container")

    def delete(self, container_id: str) -> None:
        container = self.db.get(Container, container_id)
        if container is None:
            return
        # parcels are kept; their container_id is nulled on flush
        self.db.delete(container)
        self._commit("delete container")
