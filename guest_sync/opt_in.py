"""Classification of the captive portal's marketing opt-in field.

The upstream form builder sends consent as a boolean, a string, a checkbox
list (``["Item 1"]``) or an object, depending on how the form was set up.
``classify_opt_in`` turns all of those into one tagged value so the pipeline
only ever asks ``signal.opted_in``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

AFFIRMATIVE_STRINGS = frozenset({"yes", "true", "1"})


class OptInKind(str, Enum):
    ABSENT = "absent"
    BOOLEAN = "boolean"
    TEXT = "text"
    COLLECTION = "collection"
    MAPPING = "mapping"
    OTHER = "other"


@dataclass(frozen=True)
class OptInSignal:
    kind: OptInKind
    opted_in: bool


def classify_opt_in(value: Any) -> OptInSignal:
    """Classify a raw opt-in value. Anything not clearly affirmative is a no."""
    if value is None:
        return OptInSignal(OptInKind.ABSENT, False)

    # bool before anything numeric: True must not fall through as an int
    if isinstance(value, bool):
        return OptInSignal(OptInKind.BOOLEAN, value)

    if isinstance(value, str):
        return OptInSignal(OptInKind.TEXT, value.strip().lower() in AFFIRMATIVE_STRINGS)

    if isinstance(value, (list, tuple, set, frozenset)):
        return OptInSignal(OptInKind.COLLECTION, len(value) > 0)

    if isinstance(value, Mapping):
        return OptInSignal(OptInKind.MAPPING, any(bool(v) for v in value.values()))

    return OptInSignal(OptInKind.OTHER, False)
