# parcel_router/app/services.py
# explicit wiring of stores -> rule engine -> importer
from dataclasses import dataclass

from sqlalchemy.orm import Session

from .importer import ContainerImporter
from .rules import DepartmentRuleEngine
from .sql_stores import SqlBusinessRuleStore, SqlContainerStore, SqlDepartmentStore, SqlParcelStore
from .stores import (InMemoryBusinessRuleStore, InMemoryContainerStore, InMemoryDepartmentStore,
                     InMemoryParcelStore)


@dataclass
class Services:
    departments: object
    rules: object
    parcels: object
    containers: object
    engine: DepartmentRuleEngine
    importer: ContainerImporter


def build_services(departments, rules, parcels, containers) -> Services:
    engine = DepartmentRuleEngine(departments, rules, parcels)
    importer = ContainerImporter(containers, parcels, engine)
    return Services(departments, rules, parcels, containers, engine, importer)


def memory_services() -> Services:
    return build_services(InMemoryDepartmentStore(), InMemoryBusinessRuleStore(),
                          InMemoryParcelStore(), InMemoryContainerStore())


def sql_services(db: Session) -> Services:
    return build_services(SqlDepartmentStore(db), SqlBusinessRuleStore(db),
                          SqlParcelStore(db), SqlContainerStore(db))
