from decimal import Decimal

from sqlalchemy.orm import declarative_base
from sqlalchemy import BigInteger, Numeric
from sqlalchemy.types import TypeDecorator, Integer, String

Base = declarative_base()


class BigIntegerType(TypeDecorator):
    """A type that maps to BigInteger on PostgreSQL/MySQL and Integer on SQLite."""

    impl = Integer
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name in ("postgresql", "mysql"):
            return dialect.type_descriptor(BigInteger())
        else:
            return dialect.type_descriptor(Integer())


class DecimalType(TypeDecorator):
    """
    Exact decimal quantities.

    NUMERIC(20, 6) on PostgreSQL. SQLite has no exact decimal storage, so the
    canonical string form is stored there instead. Python always sees Decimal.
    """

    impl = String
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(Numeric(20, 6, asdecimal=True))
        else:
            return dialect.type_descriptor(String(64))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        value = Decimal(value)
        if dialect.name == "postgresql":
            return value
        return str(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(str(value))
