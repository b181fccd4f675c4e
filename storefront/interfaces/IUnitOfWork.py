from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Any, Callable, Iterable

from storefront.interfaces.IStoreRepository import IStoreRepository

# A step receives the transaction's repository and the value produced by the
# previous step, and returns the value for the next one.
Step = Callable[[IStoreRepository, Any], Any]


class IUnitOfWork(ABC):
    @abstractmethod
    def begin(self) -> AbstractContextManager[IStoreRepository]:
        """Open a transaction. Commits on clean exit, rolls back if the block raises."""
        pass

    def run(self, steps: Iterable[Step], value: Any = None) -> Any:
        """Thread ``value`` through ``steps`` inside one all-or-nothing transaction."""
        with self.begin() as repo:
            for step in steps:
                value = step(repo, value)
            return value
