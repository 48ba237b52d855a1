"""
Reading the worker configuration from the environment (.env is loaded by dbtool).

Shared object storage settings are required: when they are missing the
worker cannot do anything and refuses to start. Databases are configured
with indexed variables (``DB_NAME_0``, ``DB_HOST_0``, ...); a database with
an incomplete or invalid block is reported and skipped while the others are
still scheduled.
"""

import os
from typing import Iterable, List, Mapping, Optional

from console_utils import get_messenger
from services.errors import ConfigurationError, UnknownDatabaseTypeError
from services.interfaces import IMessenger
from services.models import DatabaseConfiguration, ObjectStoreConfiguration, ScheduledDatabase
from services.scheduling.cron import validate_cron_pattern

SHARED_VARIABLES = [
    "S3_BUCKET",
    "DB_NUMBER",
    "S3_ACCESS_KEY",
    "S3_SECRET_KEY",
    "S3_ENDPOINT",
    "S3_SSL",
    "S3_FORCE_PATH_STYLE",
]

DATABASE_VARIABLES = [
    "DB_NAME",
    "DB_HOST",
    "DB_PORT",
    "DB_USER",
    "DB_PASS",
    "DB_CRON_PATTERN",
    "DB_TYPE",
]


def parse_bool(value: Optional[str]) -> bool:
    return (value or "").strip().lower() == "true"


def parse_skip_tables(value: Optional[str]) -> frozenset:
    if not value:
        return frozenset()
    return frozenset(name.strip() for name in value.split(",") if name.strip())


def missing_variables(env: Mapping[str, str], names: Iterable[str]) -> List[str]:
    return [name for name in names if not env.get(name)]


def load_object_store_config(env: Mapping[str, str] = os.environ) -> ObjectStoreConfiguration:
    missing = missing_variables(env, SHARED_VARIABLES)
    if missing:
        raise ConfigurationError(f"Missing env properties: {', '.join(missing)}")

    return ObjectStoreConfiguration(
        endpoint=env["S3_ENDPOINT"],
        bucket=env["S3_BUCKET"],
        access_key=env["S3_ACCESS_KEY"],
        secret_key=env["S3_SECRET_KEY"],
        secure=parse_bool(env["S3_SSL"]),
        force_path_style=parse_bool(env["S3_FORCE_PATH_STYLE"]),
    )


def database_count(env: Mapping[str, str] = os.environ) -> int:
    raw = env.get("DB_NUMBER", "1")
    try:
        count = int(raw)
    except ValueError:
        raise ConfigurationError(f"DB_NUMBER must be an integer, got '{raw}'") from None
    if count < 1:
        raise ConfigurationError("DB_NUMBER must be at least 1")
    return count


def load_database(env: Mapping[str, str], index: int,
                  supported_types: Optional[Iterable[str]] = None) -> ScheduledDatabase:
    names = [f"{variable}_{index}" for variable in DATABASE_VARIABLES]
    missing = missing_variables(env, names)
    if missing:
        raise ConfigurationError(
            f"Missing env properties for database ({index}): {', '.join(missing)}"
        )

    raw_port = env[f"DB_PORT_{index}"]
    try:
        port = int(raw_port)
    except ValueError:
        raise ConfigurationError(f"DB_PORT_{index} must be an integer, got '{raw_port}'") from None

    database_type = env[f"DB_TYPE_{index}"].strip().lower()
    if supported_types is not None and database_type not in set(supported_types):
        raise UnknownDatabaseTypeError(database_type, supported_types)

    return ScheduledDatabase(
        index=index,
        database_type=database_type,
        cron_pattern=validate_cron_pattern(env[f"DB_CRON_PATTERN_{index}"]),
        database=DatabaseConfiguration(
            name=env[f"DB_NAME_{index}"],
            host=env[f"DB_HOST_{index}"],
            port=port,
            user=env[f"DB_USER_{index}"],
            password=env[f"DB_PASS_{index}"],
            skip_tables=parse_skip_tables(env.get(f"DB_SKIP_TABLES_{index}")),
        ),
    )


def load_databases(env: Mapping[str, str] = os.environ,
                   supported_types: Optional[Iterable[str]] = None,
                   messenger: Optional[IMessenger] = None) -> List[ScheduledDatabase]:
    """Load every configured database, skipping (and reporting) the invalid ones."""
    messenger = messenger or get_messenger()
    supported = frozenset(supported_types) if supported_types is not None else None

    databases = []
    seen = {}
    for index in range(database_count(env)):
        try:
            entry = load_database(env, index, supported)
        except ConfigurationError as e:
            messenger.error(f"{e}. Database ({index}) will not be backed up.")
            continue

        target = (entry.database_type, entry.database.name)
        if target in seen:
            messenger.warning(
                f"Databases ({seen[target]}) and ({index}) are both {entry.database_type}:\"{entry.database.name}\"; "
                f"their backups share the prefix backup/{entry.database_type}_{entry.database.name}/ in the bucket"
            )
        else:
            seen[target] = index
        databases.append(entry)
    return databases
