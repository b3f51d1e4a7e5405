"""Table-shaped response envelopes shared by the API controllers."""

from dataclasses import asdict, dataclass
from typing import Any


@dataclass
class ColumnMeta:
    """Describes one key of the rows in a response."""

    key: str
    label: str
    type: str  # "string", "datetime", "uuid", "image"


@dataclass
class SingleRowResponse:
    columns: list[ColumnMeta]
    data: dict[str, Any] | None

    @classmethod
    def of(cls, columns: list[ColumnMeta], record: Any) -> "SingleRowResponse":
        """Wrap a dataclass record, keeping only the described columns."""
        return cls(columns=columns, data=_project(columns, asdict(record)))


@dataclass
class MultiRowResponse:
    columns: list[ColumnMeta]
    data: list[dict[str, Any]]

    @classmethod
    def of(cls, columns: list[ColumnMeta], records: list[Any]) -> "MultiRowResponse":
        return cls(
            columns=columns,
            data=[_project(columns, asdict(record)) for record in records],
        )


def _project(columns: list[ColumnMeta], row: dict[str, Any]) -> dict[str, Any]:
    return {column.key: row.get(column.key) for column in columns}
