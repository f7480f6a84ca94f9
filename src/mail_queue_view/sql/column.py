# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Column definitions used by Table.configure()."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

# Generic column types; adapters may translate them (see DbAdapter.column_type).
String = "TEXT"
Integer = "INTEGER"
BigInteger = "BIGINT"
Blob = "BLOB"
Json = "JSON"


class Column:
    """A single column: name, type and constraints."""

    def __init__(
        self,
        name: str,
        type_: str,
        nullable: bool = True,
        default: Any = None,
    ) -> None:
        self.name = name
        self.type_ = type_
        self.nullable = nullable
        self.default = default

    @property
    def is_json(self) -> bool:
        return self.type_ == Json

    def to_sql(self, column_type: Callable[[str], str] | None = None) -> str:
        """Render the column definition, mapping the type through ``column_type``."""
        type_ = String if self.is_json else self.type_
        if column_type is not None:
            type_ = column_type(type_)
        parts = [self.name, type_]
        if not self.nullable:
            parts.append("NOT NULL")
        if self.default is not None:
            default = self.default if isinstance(self.default, (int, float)) else f"'{self.default}'"
            parts.append(f"DEFAULT {default}")
        return " ".join(parts)


class Columns(dict[str, Column]):
    """Ordered collection of columns keyed by name."""

    def column(
        self,
        name: str,
        type_: str,
        nullable: bool = True,
        default: Any = None,
    ) -> Column:
        col = Column(name, type_, nullable=nullable, default=default)
        self[name] = col
        return col

    def json_columns(self) -> list[str]:
        return [name for name, col in self.items() if col.is_json]


__all__ = ["BigInteger", "Blob", "Column", "Columns", "Integer", "Json", "String"]
