"""In-memory entity collections with a keyed mutation API."""

from typing import Any, Callable, Generic, Iterable, Optional, TypeVar

from pydantic import BaseModel

from libs.common.errors import NotFoundError
from libs.common.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T", bound=BaseModel)
Listener = Callable[[], None]


class Observable:
    """Synchronous change notification shared by all stores."""

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()


class EntityCollection(Observable, Generic[T]):
    """
    Flat ordered collection of one entity type, a selected id and a loading
    flag.

    Mutations replace the whole list, append, merge into the item with a
    given id, or remove by id. Nothing is addressed by position.
    """

    def __init__(self, key: str = "id") -> None:
        super().__init__()
        self._key = key
        self._items: list[T] = []
        self._selected_id: Optional[str] = None
        self.is_loading = False

    # ----- reads ----------------------------------------------------------

    @property
    def items(self) -> list[T]:
        return list(self._items)

    @property
    def selected(self) -> Optional[T]:
        return self.get(self._selected_id) if self._selected_id else None

    def get(self, item_id: str) -> Optional[T]:
        for item in self._items:
            if getattr(item, self._key) == item_id:
                return item
        return None

    def filter(self, predicate: Callable[[T], bool]) -> list[T]:
        return [item for item in self._items if predicate(item)]

    def __len__(self) -> int:
        return len(self._items)

    # ----- mutations ------------------------------------------------------

    def set_all(self, items: Iterable[T]) -> None:
        self._items = list(items)
        if self._selected_id and self.get(self._selected_id) is None:
            self._selected_id = None
        self._notify()

    def add(self, item: T) -> None:
        item_id = getattr(item, self._key)
        if self.get(item_id) is not None:
            self._items = [
                item if getattr(existing, self._key) == item_id else existing
                for existing in self._items
            ]
        else:
            self._items.append(item)
        self._notify()

    def update(self, item_id: str, **changes: Any) -> T:
        current = self.get(item_id)
        if current is None:
            raise NotFoundError(f"No item {item_id} in store")
        updated = current.model_copy(update=changes)
        self._items = [
            updated if getattr(existing, self._key) == item_id else existing
            for existing in self._items
        ]
        self._notify()
        return updated

    def remove(self, item_id: str) -> None:
        self._items = [i for i in self._items if getattr(i, self._key) != item_id]
        if self._selected_id == item_id:
            self._selected_id = None
        self._notify()

    def select(self, item_id: Optional[str]) -> None:
        if item_id is not None and self.get(item_id) is None:
            raise NotFoundError(f"No item {item_id} in store")
        self._selected_id = item_id
        self._notify()

    def set_loading(self, loading: bool) -> None:
        self.is_loading = loading
        self._notify()

    def clear(self) -> None:
        self._items = []
        self._selected_id = None
        self.is_loading = False
        self._notify()
