"""Entity types shared by the test modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel

from entity_sql import Column


class Company(BaseModel):
    id: Annotated[int, Column(primary_key=True, auto_increment=True)] = 0
    name: Annotated[str, Column(not_null=True)] = ""
    employees: int = 0
    url: str | None = None


class Employee(BaseModel):
    id: Annotated[int, Column(primary_key=True, auto_increment=True)] = 0
    company_id: int = 0
    name: str = ""


class Status(Enum):
    ACTIVE = "active"
    RETIRED = "retired"


@dataclass(frozen=True)
class Point:
    """Stored as ``"x,y"`` text through a custom converter."""

    x: int
    y: int

    def __str__(self) -> str:
        return f"{self.x},{self.y}"

    @classmethod
    def parse(cls, text: str) -> Point:
        x, y = text.split(",")
        return cls(int(x), int(y))


@dataclass
class Located:
    id: Annotated[int, Column(primary_key=True, auto_increment=True)] = 0
    position: Point | None = None


@dataclass
class ValueModel:
    id: Annotated[int, Column(primary_key=True, auto_increment=True)] = 0
    integer: int | None = None
    string: str | None = None
    flag: bool = False
    ratio: float | None = None
    amount: Decimal | None = None
    created: datetime | None = None
    day: date | None = None
    elapsed: timedelta | None = None
    token: UUID | None = None
    blob: bytes | None = None
    status: Status | None = None


@dataclass
class Tagged:
    __tablename__ = "tagged"

    id: Annotated[int, Column(primary_key=True, auto_increment=True)] = 0
    full_name: Annotated[str | None, Column(name="name", index="by_name")] = None
    code: str | None = field(default=None, metadata={"column": Column(unique=True)})
    scratch: Annotated[str | None, Column(ignore=True)] = None


@dataclass
class EvolvingV1:
    __tablename__ = "evolving"

    id: Annotated[int, Column(primary_key=True, auto_increment=True)] = 0
    name: str | None = None


@dataclass
class EvolvingV2:
    __tablename__ = "evolving"

    id: Annotated[int, Column(primary_key=True, auto_increment=True)] = 0
    name: str | None = None
    rank: Annotated[int, Column(not_null=True)] = 0
    code: Annotated[str | None, Column(unique=True)] = None
    label: Annotated[str | None, Column(index="by_label")] = None


@dataclass
class EvolvingV3:
    __tablename__ = "evolving"

    id: Annotated[int, Column(primary_key=True, auto_increment=True)] = 0
    name: int | None = None


@dataclass
class Pair:
    id: Annotated[int, Column(primary_key=True, auto_increment=True)] = 0
    a: int | None = None
    b: int | None = None


@dataclass
class BigCompany:
    __tablename__ = "big_company"
    __view__ = "big_company.sql"

    id: int = 0
    name: str = ""
