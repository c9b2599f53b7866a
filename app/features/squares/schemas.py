from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator

from app.db.models.squares import GRID_SIZE, SquareStatus


# -----------------------------
# Claim / confirm
# -----------------------------

class CellIn(BaseModel):
    row: int = Field(ge=0, le=GRID_SIZE - 1, examples=[3])
    col: int = Field(ge=0, le=GRID_SIZE - 1, examples=[7])


class ClaimIn(BaseModel):
    cells: List[CellIn] = Field(min_length=1, max_length=GRID_SIZE * GRID_SIZE)

    @field_validator("cells")
    @classmethod
    def no_duplicate_cells(cls, cells: List[CellIn]) -> List[CellIn]:
        seen = set()
        for cell in cells:
            key = (cell.row, cell.col)
            if key in seen:
                raise ValueError(f"Duplicate cell ({cell.row}, {cell.col})")
            seen.add(key)
        return cells

    def as_tuples(self):
        return [(c.row, c.col) for c in self.cells]


class ConfirmIn(BaseModel):
    square_ids: List[int] = Field(min_length=1, max_length=GRID_SIZE * GRID_SIZE)


class ConfirmOut(BaseModel):
    confirmed_count: int


# -----------------------------
# Grid
# -----------------------------

class SquareOut(BaseModel):
    id: int
    row: int
    col: int
    status: SquareStatus
    player_id: Optional[int] = None
    player_name: Optional[str] = None
    reserved_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
