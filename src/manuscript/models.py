"""Pydantic models for manuscript job descriptors.

A manuscript descriptor is the YAML file a user writes to describe a job:
its sources, transforms, sinks and, optionally, the three network ports the
job's containers publish. Field aliases follow the camelCase keys of the
descriptor format; snake_case spellings are accepted as well.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

# Job names become directory names and compose project names
JOB_NAME_RE = re.compile(r"^[a-z0-9][a-z0-9_-]*$")


# =============================================================================
# Descriptor sections
# =============================================================================


class Source(BaseModel):
    """Dataset a job reads from."""

    model_config = ConfigDict(extra="ignore")

    name: str = ""
    type: str = "dataset"
    dataset: str = ""
    filter: str = ""


class Transform(BaseModel):
    """SQL transform applied to the sources."""

    model_config = ConfigDict(extra="ignore")

    name: str = ""
    sql: str = ""


class Sink(BaseModel):
    """Destination the transformed rows are written to."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str = ""
    type: str = ""
    from_: str = Field(default="", alias="from")
    database: str = ""
    schema_: str = Field(default="public", alias="schema")
    table: str = ""
    primary_key: str = Field(default="", validation_alias=AliasChoices("primary_key", "primaryKey"))
    config: dict[str, Any] = Field(default_factory=dict)


# =============================================================================
# Manuscript
# =============================================================================


class Manuscript(BaseModel):
    """A named data-pipeline job and its three network ports.

    A port value of 0 means "not set"; missing ports are filled in by
    :func:`manuscript.deployment.ports.initialize_ports` before deployment.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str = Field(min_length=1)
    spec_version: str = Field(
        default="v1.0.0", validation_alias=AliasChoices("specVersion", "spec_version")
    )
    parallelism: int = 1

    port: int = 0
    graphql_port: int = Field(default=0, validation_alias=AliasChoices("graphqlPort", "graphql_port"))
    db_port: int = Field(default=0, validation_alias=AliasChoices("dbPort", "db_port"))

    db_user: str = Field(default="postgres", validation_alias=AliasChoices("dbUser", "db_user"))
    db_password: str = Field(
        default="postgres", validation_alias=AliasChoices("dbPassword", "db_password")
    )

    sources: list[Source] = Field(default_factory=list)
    transforms: list[Transform] = Field(default_factory=list)
    sinks: list[Sink] = Field(default_factory=list)

    # Display fields derived from the first source/sink/transform
    chain: str = ""
    table: str = ""
    database: str = ""
    query: str = ""
    sink: str = ""

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        if not JOB_NAME_RE.match(value):
            raise ValueError(
                f"invalid job name {value!r}: use lowercase letters, digits, '-' and '_', "
                "starting with a letter or digit"
            )
        return value

    @property
    def jobmanager_container(self) -> str:
        return f"{self.name}-jobmanager-1"

    @property
    def postgres_container(self) -> str:
        return f"{self.name}-postgres-1"

    @property
    def graphql_endpoint(self) -> str:
        return f"http://localhost:{self.graphql_port}"

    def to_store_dict(self) -> dict[str, Any]:
        """Serialize for the configuration store using descriptor key names."""
        return {
            "name": self.name,
            "specVersion": self.spec_version,
            "parallelism": self.parallelism,
            "port": self.port,
            "graphqlPort": self.graphql_port,
            "dbPort": self.db_port,
            "dbUser": self.db_user,
            "dbPassword": self.db_password,
            "chain": self.chain,
            "table": self.table,
            "database": self.database,
            "query": self.query,
            "sink": self.sink,
        }


# =============================================================================
# Port reservations
# =============================================================================


class PortRole(Enum):
    """The three fixed purposes a job's ports serve, in allocation order."""

    SERVICE = "service"
    QUERY_ENDPOINT = "query-endpoint"
    DATABASE = "database"

    @property
    def field_name(self) -> str:
        return _ROLE_FIELDS[self]

    @property
    def port_range(self) -> tuple[int, int]:
        return PORT_RANGES[self]


_ROLE_FIELDS = {
    PortRole.SERVICE: "port",
    PortRole.QUERY_ENDPOINT: "graphql_port",
    PortRole.DATABASE: "db_port",
}

PORT_RANGES = {
    PortRole.SERVICE: (8081, 8181),
    PortRole.QUERY_ENDPOINT: (8082, 8182),
    PortRole.DATABASE: (15432, 15532),
}


@dataclass(frozen=True)
class PortReservation:
    """A port claimed by a job for one role."""

    port: int
    manuscript_name: str
    role: PortRole
