"""Immutable telemetry records handed to exporters.

Records are created once, when telemetry is finalized (e.g. a span ends),
and never mutated afterwards. Transformers derive new records with
:meth:`Record.with_attributes` instead of editing them in place.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, ClassVar, Iterator, Mapping, Optional, Union

from telexport.exceptions import ConfigurationError

AttributeValue = Union[str, bool, int, float, tuple]
Attributes = Mapping[str, AttributeValue]

_EMPTY_ATTRIBUTES: Attributes = MappingProxyType({})


def _empty_attributes() -> Attributes:
    return _EMPTY_ATTRIBUTES


class DataType(str, Enum):
    """Closed set of telemetry data types.

    New kinds of telemetry are added here as new members; there is no
    runtime registration of data types.
    """

    SPAN = "span"
    MEASURE = "measure"

    @classmethod
    def parse(cls, value: Union[str, "DataType"]) -> "DataType":
        """Parse a config value such as ``"span"`` or ``"MEASURE"``."""
        if isinstance(value, DataType):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            valid = ", ".join(member.value for member in cls)
            raise ConfigurationError(
                f"Unknown data type: {value!r}. Valid data types: {valid}"
            ) from None


def freeze_attributes(attributes: Optional[Mapping[str, Any]]) -> Attributes:
    """Copy ``attributes`` into a read-only mapping, keeping insertion order."""
    if not attributes:
        return _EMPTY_ATTRIBUTES
    return MappingProxyType(dict(attributes))


class Record:
    """Base for every record type.

    Subclasses are frozen dataclasses declaring ``DATA_TYPE`` and an
    ``attributes`` field.
    """

    DATA_TYPE: ClassVar[DataType]
    attributes: Attributes

    @property
    def data_type(self) -> DataType:
        return self.DATA_TYPE

    def with_attributes(self, attributes: Mapping[str, Any]) -> "Record":
        """Return a copy of this record carrying ``attributes``."""
        return dataclasses.replace(self, attributes=attributes)  # type: ignore[type-var]


def _freeze_field(obj: object, name: str) -> None:
    object.__setattr__(obj, name, freeze_attributes(getattr(obj, name)))


@dataclass(frozen=True)
class SpanEvent:
    """A timestamped event recorded during a span."""

    name: str
    timestamp: int
    attributes: Attributes = field(default_factory=_empty_attributes)

    def __post_init__(self) -> None:
        _freeze_field(self, "attributes")


@dataclass(frozen=True)
class Span(Record):
    """A finished span. Times are nanoseconds since the epoch."""

    DATA_TYPE: ClassVar[DataType] = DataType.SPAN

    name: str
    trace_id: int
    span_id: int
    start_time: int
    end_time: int
    parent_id: Optional[int] = None
    attributes: Attributes = field(default_factory=_empty_attributes)
    events: tuple[SpanEvent, ...] = ()

    def __post_init__(self) -> None:
        _freeze_field(self, "attributes")
        object.__setattr__(self, "events", tuple(self.events))

    @property
    def duration(self) -> int:
        return self.end_time - self.start_time


@dataclass(frozen=True)
class Measure(Record):
    """A single metric measurement."""

    DATA_TYPE: ClassVar[DataType] = DataType.MEASURE

    name: str
    value: Union[int, float]
    timestamp: int
    unit: str = ""
    attributes: Attributes = field(default_factory=_empty_attributes)

    def __post_init__(self) -> None:
        _freeze_field(self, "attributes")


@dataclass(frozen=True)
class Batch(Record):
    """Records of one data type forwarded downstream in a single call.

    A batch is a record of its members' data type, so it flows through the
    same exporters as the records it groups. Its own ``attributes`` are
    always empty.
    """

    batch_type: DataType
    records: tuple[Record, ...]
    attributes: Attributes = field(default_factory=_empty_attributes, init=False)

    def __post_init__(self) -> None:
        records = tuple(self.records)
        for record in records:
            if record.data_type is not self.batch_type:
                raise ValueError(
                    f"Batch of {self.batch_type.value} cannot hold a "
                    f"{record.data_type.value} record"
                )
        object.__setattr__(self, "records", records)

    @property
    def data_type(self) -> DataType:
        return self.batch_type

    def with_attributes(self, attributes: Mapping[str, Any]) -> "Batch":
        raise TypeError("Batch attributes are fixed; limit member records instead")

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[Record]:
        return iter(self.records)


def iter_records(record: Record) -> Iterator[Record]:
    """Yield the individual records in ``record``, expanding batches."""
    if isinstance(record, Batch):
        for member in record.records:
            yield from iter_records(member)
    else:
        yield record
