from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class IteratorEntry(BaseModel):
    """One element yielded by a PageIterator.

    ``key`` is ``[hash]`` or ``[hash, range]`` and ``value`` holds the remaining
    attributes. A failed page fetch yields a single entry with ``err`` set and
    empty key/value; it is always the last entry of the iteration.
    """

    key: List[Any] = Field(default_factory=list)
    value: Dict[str, Any] = Field(default_factory=dict)
    err: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.err is None

    model_config = ConfigDict(arbitrary_types_allowed=True)
