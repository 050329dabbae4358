"""
Duplicate Analyzer - values that occur more than once in a record set.
"""
from collections import Counter
from typing import Dict, Iterable, Mapping, Sequence, Set

from dock_tally.utils.helpers import as_text

DUPLICATE_COLUMNS = ("hb", "container")


def find_duplicates(
    records: Iterable[Mapping[str, object]],
    columns: Sequence[str] = DUPLICATE_COLUMNS,
) -> Dict[str, Set[str]]:
    """
    For each column, the set of non-blank values seen more than once.

    Values are compared after trimming; blank and whitespace-only cells are
    ignored.
    """
    counts = {column: Counter() for column in columns}
    for record in records:
        for column in columns:
            value = as_text(record.get(column)).strip()
            if value:
                counts[column][value] += 1

    return {
        column: {value for value, n in counter.items() if n > 1}
        for column, counter in counts.items()
    }
