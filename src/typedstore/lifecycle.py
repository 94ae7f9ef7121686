"""
Lifecycle interface between a host object model and store containers.

The host owns persistence and record lifecycle. It calls these hooks so
each store can (re)build its container snapshot at the right moments:

    record created in memory  -> on_initialize(record, raw_or_None)
    record read from storage  -> on_loaded(record, raw)
    before writing a row      -> dump(record)  (raw value to persist)
    row written successfully  -> on_saved(record)
    record re-read in place   -> on_reloaded(record, raw)

``typedstore.store.Store`` implements this protocol; ``typedstore.record``
is a host that drives it.
"""

from typing import Any, Dict, Optional, Protocol, Tuple, runtime_checkable


@runtime_checkable
class StoreLifecycle(Protocol):
    name: str

    def on_initialize(self, record: Any, raw: Optional[Any] = None) -> None:
        ...

    def on_loaded(self, record: Any, raw: Any) -> None:
        ...

    def dump(self, record: Any) -> Any:
        ...

    def on_saved(self, record: Any) -> None:
        ...

    def on_reloaded(self, record: Any, raw: Any) -> None:
        ...

    def change(self, record: Any) -> Optional[Tuple[Dict[str, Any], Dict[str, Any]]]:
        ...

    def saved_change(self, record: Any) -> Optional[Tuple[Dict[str, Any], Dict[str, Any]]]:
        ...
