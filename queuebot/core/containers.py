"""비교 함수 기반 컬렉션 (Map / Set / Queue).

사용자, 이모지처럼 해시할 수 없거나 동일성 판단이 별도로 필요한 객체를
호출자가 넘긴 비교 함수로만 구분한다. 모든 조회는 선형 탐색이다.
"""

from __future__ import annotations

from typing import Any, Callable, Generic, Iterable, Iterator, TypeVar

K = TypeVar("K")
V = TypeVar("V")
T = TypeVar("T")
R = TypeVar("R")

Comparator = Callable[[Any, Any], bool]


def emoji_identifier(emoji: Any) -> str | None:
    """이모지 객체를 비교용 식별 문자열로 변환. 알 수 없는 형태면 None."""
    if isinstance(emoji, str):
        return emoji
    identifier = getattr(emoji, "identifier", None)
    if isinstance(identifier, str):
        return identifier
    # discord.py Emoji / PartialEmoji
    name = getattr(emoji, "name", None)
    if isinstance(name, str) and hasattr(emoji, "id"):
        return name if emoji.id is None else f"{name}:{emoji.id}"
    return None


def compare_emoji(a: Any, b: Any) -> bool:
    """두 이모지가 같은 이모지를 가리키는지 비교.

    커스텀 이모지 객체와 그 식별 문자열은 같은 것으로 본다.
    None 은 어떤 값과도 같지 않고, 빈 문자열끼리는 같다.
    """
    left = emoji_identifier(a)
    if left is None:
        return False
    return left == emoji_identifier(b)


def compare_user(a: Any, b: Any) -> bool:
    """플랫폼이 부여한 사용자 id 비교."""
    if a is None or b is None:
        return False
    return a.id == b.id


class ComparisonMap(Generic[K, V]):
    """삽입 순서를 유지하는 (key, value) 목록."""

    def __init__(
        self, comparator: Comparator, initial: Iterable[tuple[K, V]] = ()
    ) -> None:
        self.comparator = comparator
        self._entries: list[list[Any]] = []
        for key, value in initial:
            self.add(key, value)

    def _index_of(self, key: K) -> int:
        for i, (entry_key, _) in enumerate(self._entries):
            if self.comparator(entry_key, key):
                return i
        return -1

    def add(self, key: K, value: V) -> None:
        """기존 키면 같은 위치에서 값만 덮어쓴다."""
        index = self._index_of(key)
        if index >= 0:
            self._entries[index][1] = value
        else:
            self._entries.append([key, value])

    def remove(self, key: K) -> V | None:
        index = self._index_of(key)
        if index < 0:
            return None
        return self._entries.pop(index)[1]

    def get(self, key: K, default: V | None = None) -> V | None:
        index = self._index_of(key)
        return self._entries[index][1] if index >= 0 else default

    def has(self, key: K) -> bool:
        return self._index_of(key) >= 0

    def entries(self) -> list[tuple[K, V]]:
        return [(key, value) for key, value in self._entries]

    def keys(self) -> list[K]:
        return [key for key, _ in self._entries]

    def values(self) -> list[V]:
        return [value for _, value in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return self.has(key)  # type: ignore[arg-type]


class ComparisonSet(Generic[T]):
    """중복 없는 순서 있는 목록."""

    def __init__(self, comparator: Comparator, initial: Iterable[T] = ()) -> None:
        self.comparator = comparator
        self._items: list[T] = []
        for value in initial:
            self.add(value)

    def _index_of(self, value: T) -> int:
        for i, item in enumerate(self._items):
            if self.comparator(value, item):
                return i
        return -1

    def add(self, value: T) -> None:
        if self._index_of(value) < 0:
            self._items.append(value)

    def remove(self, value: T) -> T | None:
        index = self._index_of(value)
        if index < 0:
            return None
        return self._items.pop(index)

    def has(self, value: T) -> bool:
        return self._index_of(value) >= 0

    def get(self) -> list[T]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._items))


class ComparisonQueue(Generic[T]):
    """위치 기반 연산과 비교 함수 기반 검색/삭제를 지원하는 큐."""

    def __init__(self, comparator: Comparator, initial: Iterable[T] = ()) -> None:
        self.comparator = comparator
        self._queue: list[T] = []
        for value in initial:
            self.push(value)

    def get(self, index: int | None = None) -> Any:
        """index 가 없으면 전체 목록(사본), 있으면 해당 항목."""
        if index is None:
            return list(self._queue)
        return self._queue[index]

    def index_of(self, value: T) -> int:
        for i, item in enumerate(self._queue):
            if self.comparator(value, item):
                return i
        return -1

    def remove(self, value: T) -> T | None:
        """일치하는 항목을 모두 제거하고 마지막으로 제거된 값을 반환."""
        removed = None
        index = self.index_of(value)
        while index >= 0:
            removed = self._queue.pop(index)
            index = self.index_of(value)
        return removed

    def has(self, value: T) -> bool:
        return self.index_of(value) >= 0

    def push(self, value: T) -> int:
        self._queue.append(value)
        return len(self._queue) - 1

    def shift(self) -> T | None:
        if not self._queue:
            return None
        return self._queue.pop(0)

    def unshift(self, value: T) -> int:
        self._queue.insert(0, value)
        return 0

    def insert(self, value: T, index: int) -> int:
        index = max(0, min(len(self._queue), index))
        self._queue.insert(index, value)
        return index

    def map(self, func: Callable[[T], R]) -> list[R]:
        return [func(value) for value in self._queue]

    def concat(self, *queues: ComparisonQueue[T] | list[T]) -> list[T]:
        out = list(self._queue)
        for queue in queues:
            out.extend(queue.get() if isinstance(queue, ComparisonQueue) else queue)
        return out

    def join(self, separator: str) -> str:
        return separator.join(str(value) for value in self._queue)

    def __len__(self) -> int:
        return len(self._queue)

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._queue))

    def __bool__(self) -> bool:
        return bool(self._queue)


class EmojiMap(Generic[T]):
    """emoji 속성을 가진 옵션 레코드를 이모지 기준으로 보관."""

    def __init__(self, options: Iterable[T] = ()) -> None:
        self._map: ComparisonMap[Any, T] = ComparisonMap(compare_emoji)
        for option in options:
            self.add(option)

    def add(self, option: T) -> None:
        self._map.add(option.emoji, option)  # type: ignore[attr-defined]

    def remove(self, option: T) -> T | None:
        return self._map.remove(option.emoji)  # type: ignore[attr-defined]

    def get(self, emoji: Any) -> T | None:
        return self._map.get(emoji)

    def has(self, emoji: Any) -> bool:
        return self._map.has(emoji)

    def values(self) -> list[T]:
        return self._map.values()

    def __len__(self) -> int:
        return len(self._map)
