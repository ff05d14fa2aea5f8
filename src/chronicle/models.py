import copy
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Generic, Iterator, List, Optional, TypeVar

from .timepoint import Duration, TimePoint

T = TypeVar("T")

# Spec-file keys -> ItemDescriptor attributes
SPEC_KEYS = {
    "id": "id",
    "entity": "entity",
    "label": "label",
    "group": "group",
    "subgroup": "subgroup",
    "className": "class_name",
    "type": "type",
    "comment": "comment",
    "startQuery": "start_query",
    "endQuery": "end_query",
    "startEndQuery": "start_end_query",
    "startMinQuery": "start_min_query",
    "startMaxQuery": "start_max_query",
    "endMinQuery": "end_min_query",
    "endMaxQuery": "end_max_query",
    "itemQuery": "item_query",
    "expectedDuration": "expected_duration",
    "skipCache": "skip_cache",
    "finished": "finished",
    "start": "start",
    "end": "end",
    "startMin": "start_min",
    "startMax": "start_max",
    "endMin": "end_min",
    "endMax": "end_max",
    "start_min": "start_min",
    "start_max": "start_max",
    "end_min": "end_min",
    "end_max": "end_max",
}
ATTRIBUTE_KEYS = {}
for _key, _attr in SPEC_KEYS.items():
    ATTRIBUTE_KEYS.setdefault(_attr, _key)

TIME_FIELDS = ("start", "end", "start_min", "start_max", "end_min", "end_max")
# Point-time query field -> (item field for "value", for "min", for "max")
POINT_QUERY_FIELDS = {
    "start_query": ("start", "start_min", "start_max"),
    "end_query": ("end", "end_min", "end_max"),
    "start_min_query": ("start_min", None, None),
    "start_max_query": ("start_max", None, None),
    "end_min_query": ("end_min", None, None),
    "end_max_query": ("end_max", None, None),
}
PAIR_QUERY_FIELD = "start_end_query"
QUERY_FIELDS = ("start_query", "end_query", PAIR_QUERY_FIELD) + tuple(
    name for name in POINT_QUERY_FIELDS if name not in ("start_query", "end_query")
)
EXPECTATION_QUERY_FIELDS = ("start_query", "end_query", PAIR_QUERY_FIELD)

RANGE_TYPES = {None, "range"}


@dataclass(frozen=True)
class TemporalValue:
    value: Optional[str]
    precision: int = 11

    @classmethod
    def from_raw(cls, raw):
        """Accept {"value", "precision"} mappings (or an existing instance)."""
        if raw is None or isinstance(raw, TemporalValue):
            return raw
        if isinstance(raw, str):
            return cls(value=raw)
        precision = raw.get("precision")
        return cls(value=raw.get("value"), precision=11 if precision is None else int(precision))

    def to_raw(self):
        return {"value": self.value, "precision": self.precision}


@dataclass
class ItemDescriptor:
    id: Optional[str] = None
    entity: Optional[str] = None
    label: Optional[str] = None
    group: Optional[Any] = None
    subgroup: Optional[Any] = None
    class_name: Optional[str] = None
    type: Optional[str] = None
    comment: Optional[str] = None
    start_query: Optional[Any] = None
    end_query: Optional[Any] = None
    start_end_query: Optional[Any] = None
    start_min_query: Optional[str] = None
    start_max_query: Optional[str] = None
    end_min_query: Optional[str] = None
    end_max_query: Optional[str] = None
    item_query: Optional[str] = None
    expected_duration: Optional[Dict[str, str]] = None
    skip_cache: bool = False
    finished: bool = False
    start: Optional[TemporalValue] = None
    end: Optional[TemporalValue] = None
    start_min: Optional[TemporalValue] = None
    start_max: Optional[TemporalValue] = None
    end_min: Optional[TemporalValue] = None
    end_max: Optional[TemporalValue] = None
    params: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw):
        item = cls()
        for key, value in raw.items():
            attr = SPEC_KEYS.get(key)
            if attr is None:
                item.params[key] = copy.deepcopy(value)
            elif attr in TIME_FIELDS:
                setattr(item, attr, TemporalValue.from_raw(value))
            else:
                setattr(item, attr, copy.deepcopy(value))
        return item

    def to_dict(self):
        """Serialize back to spec-file keys, omitting unset fields."""
        out = {}
        for item_field in fields(self):
            if item_field.name == "params":
                continue
            value = getattr(self, item_field.name)
            if value is None or value is False:
                continue
            if isinstance(value, TemporalValue):
                value = value.to_raw()
            out[ATTRIBUTE_KEYS[item_field.name]] = copy.deepcopy(value)
        for key, value in self.params.items():
            out.setdefault(key, copy.deepcopy(value))
        return out

    def template_params(self):
        """Scalar fields usable as {placeholder} values in query templates."""
        return {
            key: value
            for key, value in self.to_dict().items()
            if isinstance(value, (str, int, float)) and not isinstance(value, bool)
        }

    def query_fields(self):
        return {name: getattr(self, name) for name in QUERY_FIELDS if getattr(self, name)}

    def apply_query_result(self, field_name, value):
        """Copy one query result ({sub-term: {value, precision}}) onto the matching time fields."""
        if field_name == PAIR_QUERY_FIELD:
            mapping = {name: name for name in TIME_FIELDS}
        else:
            mapping = dict(zip(("value", "min", "max"), POINT_QUERY_FIELDS[field_name]))
        for key, raw in value.items():
            target = mapping.get(key)
            if target:
                setattr(self, target, TemporalValue.from_raw(raw))

    def clone(self):
        return copy.deepcopy(self)


@dataclass(frozen=True)
class DurationExpectation:
    avg: Duration
    min: Optional[Duration] = None
    max: Optional[Duration] = None

    @classmethod
    def from_raw(cls, raw):
        if "avg" not in raw:
            raise ValueError("Duration expectation requires an 'avg' value.")
        return cls(
            avg=Duration.parse(raw["avg"]),
            min=Duration.parse(raw["min"]) if raw.get("min") else None,
            max=Duration.parse(raw["max"]) if raw.get("max") else None,
        )


class OneOrMany(Generic[T]):
    """Per-entity query result: one value, or several distinct statements."""

    def __init__(self, values: List[T]):
        if not values:
            raise ValueError("OneOrMany requires at least one value.")
        self._values = list(values)

    @classmethod
    def one(cls, value: T) -> "OneOrMany[T]":
        return cls([value])

    @property
    def first(self) -> T:
        return self._values[0]

    @property
    def extras(self) -> List[T]:
        return self._values[1:]

    @property
    def is_many(self) -> bool:
        return len(self._values) > 1

    def to_list(self) -> List[T]:
        return list(self._values)

    def __iter__(self) -> Iterator[T]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"OneOrMany({self._values!r})"


@dataclass
class ResolvedSegment:
    id: str
    start: TimePoint
    end: Optional[TimePoint] = None
    content: str = ""
    class_name: Optional[str] = None
    group: Optional[Any] = None
    subgroup: Optional[Any] = None
    type: Optional[str] = None
    comment: Optional[str] = None

    def to_output(self):
        output = {
            "id": self.id,
            "content": self.content,
            "start": self.start.isoformat(),
        }
        if self.end is not None:
            output["end"] = self.end.isoformat()
        if self.class_name:
            output["className"] = self.class_name
        if self.group is not None:
            output["group"] = self.group
            if self.subgroup is not None:
                output["subgroup"] = self.subgroup
        if self.type:
            output["type"] = self.type
        if self.comment:
            output["comment"] = self.comment
        return output
