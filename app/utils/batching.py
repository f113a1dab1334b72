from typing import Any, Iterable, Iterator, List, Sequence, TypeVar

T = TypeVar("T")


def chunked(items: Sequence[T], size: int) -> Iterator[List[T]]:
    """Yield consecutive slices of ``items`` holding at most ``size`` entries."""
    if size < 1:
        raise ValueError("chunk size must be at least 1")
    for idx in range(0, len(items), size):
        yield list(items[idx : idx + size])


def unique_tokens(values: Iterable[Any]) -> List[str]:
    """Deduplicate keeping first-seen order, dropping empty and non-string entries."""
    return list(dict.fromkeys(value for value in values if isinstance(value, str) and value))
