from decimal import Decimal

import pytest

from parcel_router.app.db import init_db, make_engine, make_session_factory
from parcel_router.app.models import BusinessRule
from parcel_router.app.seed import seed_defaults
from parcel_router.app.services import build_services, memory_services, sql_services

from factories import FlakyParcelStore


@pytest.fixture
def services():
    """In-memory services with the four default departments and no rules."""
    svc = memory_services()
    seed_defaults(svc.departments, svc.rules)
    return svc


@pytest.fixture
def engine(services):
    return services.engine


@pytest.fixture
def importer(services):
    return services.importer


@pytest.fixture
def add_rule(services):
    def _add(name, kind, low, high, target, active=True):
        rule = BusinessRule(name=name, kind=kind, min_value=Decimal(str(low)),
                            max_value=None if high is None else Decimal(str(high)),
                            target_department=target, is_active=active)
        return services.rules.add(rule)
    return _add


@pytest.fixture
def flaky_services():
    """Build services whose parcel store fails on the given add call."""
    def _build(fail_on_add):
        base = memory_services()
        seed_defaults(base.departments, base.rules)
        return build_services(base.departments, base.rules, FlakyParcelStore(fail_on_add), base.containers)
    return _build


@pytest.fixture
def session_factory():
    engine = make_engine("sqlite://")
    init_db(engine)
    try:
        yield make_session_factory(engine)
    finally:
        engine.dispose()


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def sql_svc(db_session):
    svc = sql_services(db_session)
    seed_defaults(svc.departments, svc.rules)
    return svc
