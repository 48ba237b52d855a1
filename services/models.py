from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


@dataclass(frozen=True)
class DatabaseConfiguration:
    name: str
    host: str
    port: int
    user: str
    password: str = field(repr=False)
    skip_tables: frozenset = frozenset()


@dataclass(frozen=True)
class ObjectStoreConfiguration:
    endpoint: str
    bucket: str
    access_key: str
    secret_key: str = field(repr=False)
    secure: bool = True
    force_path_style: bool = False

    @property
    def scheme(self) -> str:
        return "https" if self.secure else "http"

    @property
    def endpoint_url(self) -> str:
        """Endpoint with a scheme, as boto3 and ClickHouse expect it."""
        if "://" in self.endpoint:
            return self.endpoint.rstrip("/")
        return f"{self.scheme}://{self.endpoint.rstrip('/')}"


@dataclass(frozen=True)
class ScheduledDatabase:
    index: int
    database_type: str
    cron_pattern: str
    database: DatabaseConfiguration


@dataclass(frozen=True)
class BackupArtifact:
    local_path: Path
    logical_key: str

    @property
    def file_name(self) -> str:
        return self.local_path.name


@dataclass(frozen=True)
class TableDescriptor:
    name: str
    row_count: int
    pagination_key: Optional[str] = None
    schema: str = "public"
