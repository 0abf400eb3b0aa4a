# parcel_router/app/api.py
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Generator, List, Optional

import structlog
from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from .config import Settings, get_settings
from .db import init_db, make_engine, make_session_factory
from .errors import ErrorKind, NotFoundError, ParcelRouterError
from .schemas import DepartmentOut, ImportResult, ParcelOut
from .seed import seed_defaults
from .services import Services, memory_services, sql_services

logger = structlog.get_logger(__name__)

STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INTEGRITY_CONFLICT: 409,
    ErrorKind.CANCELLED: 499,
    ErrorKind.STORAGE_FAILURE: 500,
}

router = APIRouter()


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    if settings.storage == "sql":
        app.state.engine = make_engine(settings.database_url)
        init_db(app.state.engine)
        app.state.session_factory = make_session_factory(app.state.engine)
        db = app.state.session_factory()
        try:
            services = sql_services(db)
            seed_defaults(services.departments, services.rules, with_rules=settings.seed_rules)
        finally:
            db.close()
    else:
        app.state.services = memory_services()
        seed_defaults(app.state.services.departments, app.state.services.rules,
                      with_rules=settings.seed_rules)
    logger.info("api_started", storage=settings.storage)
    yield
    if app.state.engine is not None:
        app.state.engine.dispose()


def get_services(request: Request) -> Generator[Services, None, None]:
    state = request.app.state
    if state.session_factory is None:
        yield state.services
        return
    # one session per request, like the rest of the app's endpoints
    db = state.session_factory()
    try:
        yield sql_services(db)
    finally:
        db.close()


async def handle_router_error(request: Request, exc: ParcelRouterError):
    return JSONResponse(status_code=STATUS_BY_KIND.get(exc.kind, 500),
                        content=exc.to_response().model_dump())


@router.get("/health")
def health():
    return {"status": "ok"}


# ---------------------------
# Containers
# ---------------------------
@router.post("/api/containers/import", response_model=ImportResult)
async def import_container(request: Request, services: Services = Depends(get_services)):
    raw = await request.body()
    return await run_in_threadpool(services.importer.import_manifest, raw)


@router.post("/api/containers/validate")
async def validate_container(request: Request, services: Services = Depends(get_services)):
    raw = await request.body()
    return {"valid": services.importer.validate(raw)}


@router.get("/api/containers/{container_id}", response_model=ImportResult)
def get_container(container_id: str, services: Services = Depends(get_services)):
    container = services.containers.get_by_business_id(container_id)
    if container is None:
        raise NotFoundError("Container", container_id)
    return ImportResult.from_container(container)


@router.post("/api/containers/{container_id}/assign", response_model=ImportResult)
def reassign_container(container_id: str, services: Services = Depends(get_services)):
    container = services.containers.get_by_business_id(container_id)
    if container is None:
        raise NotFoundError("Container", container_id)
    services.engine.reassign_container(container.id)
    return ImportResult.from_container(container)


# ---------------------------
# Parcels / departments
# ---------------------------
@router.get("/api/parcels/{parcel_id}", response_model=ParcelOut)
def get_parcel(parcel_id: str, services: Services = Depends(get_services)):
    parcel = services.parcels.get_by_id(parcel_id)
    if parcel is None:
        raise NotFoundError("Parcel", parcel_id)
    return ParcelOut.model_validate(parcel)


@router.get("/api/parcels/{parcel_id}/departments", response_model=List[DepartmentOut])
def parcel_departments(parcel_id: str, services: Services = Depends(get_services)):
    return [DepartmentOut.model_validate(d) for d in services.engine.departments_for_parcel(parcel_id)]


@router.post("/api/parcels/{parcel_id}/assign", response_model=ParcelOut)
def reassign_parcel(parcel_id: str, services: Services = Depends(get_services)):
    return ParcelOut.model_validate(services.engine.reassign_departments(parcel_id))


@router.post("/api/parcels/{parcel_id}/departments/{department_id}", response_model=ParcelOut)
def add_parcel_department(parcel_id: str, department_id: str, services: Services = Depends(get_services)):
    return ParcelOut.model_validate(services.engine.add_department(parcel_id, department_id))


@router.delete("/api/parcels/{parcel_id}/departments/{department_id}", response_model=ParcelOut)
def remove_parcel_department(parcel_id: str, department_id: str, services: Services = Depends(get_services)):
    return ParcelOut.model_validate(services.engine.remove_department(parcel_id, department_id))


@router.get("/api/departments/resolve", response_model=List[DepartmentOut])
def resolve_departments(weight: Decimal = Query(..., gt=0), value: Decimal = Query(..., ge=0),
                        services: Services = Depends(get_services)):
    return [DepartmentOut.model_validate(d) for d in services.engine.determine_departments(weight, value)]


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    app = FastAPI(title="ParcelRouter API", lifespan=lifespan)
    app.state.settings = settings or get_settings()
    app.state.engine = None
    app.state.session_factory = None
    app.state.services = None
    app.include_router(router)
    app.add_exception_handler(ParcelRouterError, handle_router_error)
    return app


app = create_app()
