# parcel_router/app/main.py
import argparse
import sys

import uvicorn

from .config import get_settings
from .logging_setup import configure_logging


def import_files(paths):
    """Import manifest files against the configured storage; exit code 1 if any failed."""
    from .db import init_db, make_engine, make_session_factory
    from .errors import ParcelRouterError
    from .seed import seed_defaults
    from .services import memory_services, sql_services

    settings = get_settings()
    db = None
    if settings.storage == "sql":
        engine = make_engine(settings.database_url)
        init_db(engine)
        db = make_session_factory(engine)()
        services = sql_services(db)
    else:
        services = memory_services()
    seed_defaults(services.departments, services.rules, with_rules=settings.seed_rules)

    failed = 0
    try:
        for path in paths:
            try:
                result = services.importer.import_file(path)
                print(f"{path}: container {result.container_id}, {result.total_parcels} parcels, "
                      f"{result.parcels_requiring_insurance} need insurance")
            except ParcelRouterError as e:
                failed += 1
                print(f"{path}: {e.kind.value} {e.message}", file=sys.stderr)
    finally:
        if db is not None:
            db.close()
    return 1 if failed else 0


def main(argv=None):
    parser = argparse.ArgumentParser(prog="parcel-router")
    parser.add_argument("manifests", nargs="*", help="manifest files to import instead of serving the API")
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(settings.log_level, settings.json_logs)
    if args.manifests:
        return import_files(args.manifests)

    uvicorn.run("parcel_router.app.api:app", host=settings.host, port=settings.port,
                log_level=settings.log_level.lower())
    return 0


if __name__ == "__main__":
    sys.exit(main())
