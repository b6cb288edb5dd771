from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .enums import KeyType


class TableSchema(BaseModel):
    """Hash/range key names and types of a bound table.

    Resolved once when a table handle is bound and never modified afterwards.
    """

    hash_key: Optional[str] = Field(None, description="Partition key attribute name")
    hash_type: Optional[KeyType] = Field(None, description="Partition key attribute type")
    range_key: Optional[str] = Field(None, description="Sort key attribute name")
    range_type: Optional[KeyType] = Field(None, description="Sort key attribute type")

    @property
    def is_ready(self) -> bool:
        return bool(self.hash_key and self.hash_type)

    @property
    def key_names(self):
        return [name for name in (self.hash_key, self.range_key) if name]

    model_config = ConfigDict(frozen=True, use_enum_values=True)
