"""
Кільцевий буфер з неперервною нумерацією записів (курсор seq).

Номери seq ніколи не використовуються повторно: після витіснення найстаріших
записів клієнт, що запитує витіснений діапазон, просто отримує менше записів.
"""

from collections import deque
from itertools import islice
from typing import Deque, Generic, List, NamedTuple, TypeVar


T = TypeVar('T')


class QueryResult(NamedTuple):
    """Результат інкрементального запиту."""
    items: list
    seq_end: int
    seq_last: int


class SequencedLog(Generic[T]):
    """Буфер фіксованої ємності плюс лічильник seq, що лише зростає."""

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError("Ємність журналу повинна бути >= 1")
        self.capacity = capacity
        self._entries: Deque[T] = deque(maxlen=capacity)
        self._last_seq = 0

    @property
    def last_seq(self) -> int:
        """Seq останнього доданого запису (0 якщо записів не було)."""
        return self._last_seq

    @property
    def first_seq(self) -> int:
        """Seq найстарішого збереженого запису (0 якщо буфер порожній)."""
        if not self._entries:
            return 0
        return self._last_seq - len(self._entries) + 1

    def __len__(self) -> int:
        return len(self._entries)

    def next_seq(self) -> int:
        """Зарезервувати наступний номер seq."""
        self._last_seq += 1
        return self._last_seq

    def push(self, entry: T) -> T:
        """Додати запис, якому вже призначено next_seq(); найстаріший витісняється."""
        self._entries.append(entry)
        return entry

    def latest(self):
        """Останній запис або None."""
        return self._entries[-1] if self._entries else None

    def query(self, since: int, max_items: int) -> QueryResult:
        """
        Повернути записи з seq > since у порядку зростання, не більше max_items.

        Args:
            since: Курсор клієнта (seq_end попереднього запиту)
            max_items: Максимальна кількість записів

        Returns:
            QueryResult; seq_end - seq останнього поверненого запису або since
        """
        since = max(0, since)
        items: List[T] = []
        if self._entries and max_items > 0 and since < self._last_seq:
            start = max(0, since - self.first_seq + 1)
            items = list(islice(self._entries, start, start + max_items))

        seq_end = items[-1].seq if items else since
        return QueryResult(items, seq_end, self._last_seq)

    def entries(self) -> List[T]:
        """Усі збережені записи (від найстарішого)."""
        return list(self._entries)
