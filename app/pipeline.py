"""
Composable aggregation stages over in-memory rows.

A pipeline is a sequence of stages; each stage takes an iterable of rows
(plain dicts) and returns a new iterable.  ``run`` threads the rows
through every stage in order and materialises the result::

    run(rows,
        unwind("tags"),
        group("tags", id_field="tag", count=sum_(1)),
        sort("count", descending=True),
        limit(3))

Stages never mutate the rows they receive.  ``group`` emits groups in the
order their keys are first seen and ``sort`` is stable, so for a fixed
input order the output is deterministic, ties included.

Besides the row stages, a few array helpers (``filter_array``,
``sort_array``, ``slice_array``, ``element_at``) operate on list values
inside a row and are meant to be used from ``add_fields``.
"""
from typing import Any, Callable, Iterable, Sequence

Row = dict[str, Any]
Stage = Callable[[Iterable[Row]], Iterable[Row]]

_MISSING = object()


def run(rows: Iterable[Row], *stages: Stage) -> list[Row]:
    for stage in stages:
        rows = stage(rows)
    return list(rows)


# ---------------------------------------------------------------------------
# Accumulators (used by ``group``)
# ---------------------------------------------------------------------------

class Accumulator:
    """Folds the rows of one group into a single value."""

    def initial(self) -> Any:
        raise NotImplementedError

    def step(self, state: Any, row: Row) -> Any:
        raise NotImplementedError

    def result(self, state: Any) -> Any:
        return state


class first(Accumulator):
    """Value of *field* in the first row of the group."""

    def __init__(self, field: str) -> None:
        self.field = field

    def initial(self) -> Any:
        return _MISSING

    def step(self, state: Any, row: Row) -> Any:
        if state is _MISSING:
            return row.get(self.field)
        return state

    def result(self, state: Any) -> Any:
        return None if state is _MISSING else state


class sum_(Accumulator):
    """Sum of a constant (``sum_(1)`` counts rows) or of a numeric field."""

    def __init__(self, value: int | float | str = 1) -> None:
        self.value = value

    def initial(self) -> Any:
        return 0

    def step(self, state: Any, row: Row) -> Any:
        if isinstance(self.value, str):
            return state + (row.get(self.value) or 0)
        return state + self.value


class push(Accumulator):
    """List of ``{field: value}`` sub-documents, one per row of the group."""

    def __init__(self, *fields: str) -> None:
        self.fields = fields

    def initial(self) -> Any:
        return []

    def step(self, state: Any, row: Row) -> Any:
        state.append({field: row.get(field) for field in self.fields})
        return state


# ---------------------------------------------------------------------------
# Row stages
# ---------------------------------------------------------------------------

def group(key: str, *, id_field: str = "_id", **accumulators: Accumulator) -> Stage:
    """
    Group rows by the value of *key*.

    Each output row holds the group key under *id_field* plus one field
    per accumulator.  Rows missing *key* fall into the ``None`` group.
    """

    def stage(rows: Iterable[Row]) -> Iterable[Row]:
        states: dict[Any, dict[str, Any]] = {}
        for row in rows:
            group_key = row.get(key)
            state = states.get(group_key)
            if state is None:
                state = {name: acc.initial() for name, acc in accumulators.items()}
                states[group_key] = state
            for name, acc in accumulators.items():
                state[name] = acc.step(state[name], row)

        for group_key, state in states.items():
            out: Row = {id_field: group_key}
            for name, acc in accumulators.items():
                out[name] = acc.result(state[name])
            yield out

    return stage


def sort(field: str, *, descending: bool = False) -> Stage:
    """Stable sort on *field*; rows whose value is None go last."""

    def stage(rows: Iterable[Row]) -> Iterable[Row]:
        return sort_array(list(rows), field, descending=descending)

    return stage


def limit(n: int) -> Stage:
    def stage(rows: Iterable[Row]) -> Iterable[Row]:
        for index, row in enumerate(rows):
            if index >= n:
                return
            yield row

    return stage


def unwind(field: str) -> Stage:
    """
    Emit one row per element of the list stored under *field*.

    Rows where the field is missing, None or an empty list produce
    nothing; a scalar value is treated as a one-element list.
    """

    def stage(rows: Iterable[Row]) -> Iterable[Row]:
        for row in rows:
            value = row.get(field)
            if value is None:
                continue
            if not isinstance(value, (list, tuple)):
                value = [value]
            for element in value:
                yield {**row, field: element}

    return stage


def add_fields(**computations: Callable[[Row], Any]) -> Stage:
    """Add (or replace) fields computed from each row."""

    def stage(rows: Iterable[Row]) -> Iterable[Row]:
        for row in rows:
            out = dict(row)
            for name, compute in computations.items():
                out[name] = compute(row)
            yield out

    return stage


def project(
    *,
    include: Sequence[str] | None = None,
    exclude: Sequence[str] | None = None,
) -> Stage:
    """Keep only *include* fields, or drop the *exclude* fields."""
    if (include is None) == (exclude is None):
        raise ValueError("project() takes exactly one of include/exclude")

    def stage(rows: Iterable[Row]) -> Iterable[Row]:
        for row in rows:
            if include is not None:
                yield {name: row[name] for name in include if name in row}
            else:
                yield {name: value for name, value in row.items() if name not in exclude}

    return stage


# ---------------------------------------------------------------------------
# Array helpers
# ---------------------------------------------------------------------------

def filter_array(items: Iterable[Any] | None, predicate: Callable[[Any], bool]) -> list:
    return [item for item in items or () if predicate(item)]


def sort_array(items: Sequence[Row], field: str, *, descending: bool = False) -> list[Row]:
    present = [item for item in items if item.get(field) is not None]
    absent = [item for item in items if item.get(field) is None]
    return sorted(present, key=lambda item: item[field], reverse=descending) + absent


def slice_array(items: Sequence[Any], n: int) -> list:
    return list(items[:n])


def element_at(items: Sequence[Any], index: int) -> Any:
    """Element at *index*, or None when the list is too short."""
    try:
        return items[index]
    except IndexError:
        return None
