"""
Chunked iteration over large query results.
"""
from collections import deque
from typing import Any, Callable, Deque, Generic, Iterator, Sequence, TypeVar

from sqlmodel import Session

T = TypeVar("T")

DEFAULT_CHUNK_SIZE = 100


class ChunkedScan(Generic[T]):
    """
    Single-pass iterator over a paged source.

    Page N is requested with ``offset = N * chunk_size`` and ``limit = chunk_size``.
    Scanning stops after the first page shorter than ``chunk_size``. The next page is
    only requested once every item of the previous one has been consumed.

    This is not a snapshot. Rows inserted or deleted between page requests may be
    skipped or seen twice, so callers that mutate the source should defer those
    changes until the scan is finished. Once exhausted the scan stays exhausted.
    """

    def __init__(self, fetch_page: Callable[[int, int], Sequence[T]], chunk_size: int = DEFAULT_CHUNK_SIZE):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be a positive integer")
        self._fetch_page = fetch_page
        self.chunk_size = chunk_size
        self.pages_fetched = 0
        self._buffer: Deque[T] = deque()
        self._exhausted = False

    def __iter__(self) -> Iterator[T]:
        return self

    def __next__(self) -> T:
        while not self._buffer:
            if self._exhausted:
                raise StopIteration
            self._load_next_page()
        return self._buffer.popleft()

    def _load_next_page(self) -> None:
        offset = self.pages_fetched * self.chunk_size
        page = list(self._fetch_page(offset, self.chunk_size))
        self.pages_fetched += 1
        if len(page) < self.chunk_size:
            self._exhausted = True
        self._buffer.extend(page)


def chunked(session: Session, statement: Any, chunk_size: int = DEFAULT_CHUNK_SIZE) -> ChunkedScan:
    """
    Scan the results of a select statement in pages of ``chunk_size``.

    The statement must carry a stable ORDER BY for the pages to line up.
    """
    def fetch_page(offset: int, limit: int):
        return session.exec(statement.offset(offset).limit(limit)).all()

    return ChunkedScan(fetch_page, chunk_size)
