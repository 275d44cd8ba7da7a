from __future__ import annotations

import sqlite3
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict


class Item(BaseModel):
    """One inventory row. ``id`` is assigned by the database when left unset."""

    model_config = ConfigDict(frozen=True)

    id: int | None = None
    name: str
    price: float
    quantity: int

    @classmethod
    def from_row(cls, row: sqlite3.Row | Mapping[str, Any]) -> Item:
        return cls.model_validate(dict(row))

    def as_params(self) -> tuple[int | None, str, float, int]:
        return (self.id, self.name, self.price, self.quantity)
