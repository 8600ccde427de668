"""
Pydantic schemas for position assignments and term assignment sets.

Request and response models for the position routes, plus the stored
``PositionAssignment`` document shape.
"""
import enum
from datetime import date, datetime
from typing import Dict, Iterable, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.features.positions.catalog import (
    BOARD_POSITIONS,
    CADRE_POSITIONS,
    counterpart,
    is_board,
    is_cadre,
    is_position,
)

# Accepted from clients for an empty seat; normalised to None.
UNASSIGNED = "unassigned"


def normalise_member_id(value: Optional[str]) -> Optional[str]:
    """Map the unassigned sentinel and blank strings to ``None``."""
    if value is None:
        return None
    value = str(value).strip()
    if not value or value.lower() == UNASSIGNED:
        return None
    return value


def _check_position(value: str) -> str:
    if not is_position(value):
        raise ValueError(f"Unknown position code: {value}")
    return value


# ============================================================================
# Stored assignment
# ============================================================================

class AssignmentStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    EXPIRED = "expired"


class PositionAssignment(BaseModel):
    """One member holding one position for a date range."""
    id: Optional[str] = None
    member_id: str = Field(..., min_length=1)
    position: str
    start_date: date
    end_date: Optional[date] = None
    is_acting: bool = False
    acting_for: Optional[str] = None
    assigned_by: Optional[str] = None
    assigned_date: Optional[datetime] = None
    status: AssignmentStatus = AssignmentStatus.ACTIVE

    @field_validator("position")
    @classmethod
    def known_position(cls, v: str) -> str:
        return _check_position(v)

    @field_validator("acting_for")
    @classmethod
    def acting_for_known(cls, v: Optional[str]) -> Optional[str]:
        return _check_position(v) if v else None

    @property
    def year(self) -> int:
        return self.start_date.year

    def to_document(self) -> dict:
        return self.model_dump(mode="json", exclude={"id"})

    @classmethod
    def from_document(cls, doc: dict) -> "PositionAssignment":
        return cls.model_validate(doc)


# ============================================================================
# Term assignment set
# ============================================================================

class BoardSeat(BaseModel):
    """A board position and its single occupant (``None`` when unassigned)."""
    position: str
    member_id: Optional[str] = None
    is_acting: bool = False
    acting_for: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @field_validator("position")
    @classmethod
    def board_position(cls, v: str) -> str:
        _check_position(v)
        if not is_board(v):
            raise ValueError(f"{v} is not a board position")
        return v

    @field_validator("member_id", mode="before")
    @classmethod
    def normalise(cls, v):
        return normalise_member_id(v)

    @field_validator("acting_for")
    @classmethod
    def acting_for_known(cls, v: Optional[str]) -> Optional[str]:
        return _check_position(v) if v else None


class CadreSeat(BaseModel):
    """A cadre position and its holders; several members may share one seat."""
    position: str
    member_ids: List[str] = Field(default_factory=list)
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @field_validator("position")
    @classmethod
    def cadre_position(cls, v: str) -> str:
        _check_position(v)
        if not is_cadre(v):
            raise ValueError(f"{v} is not a cadre position")
        return v

    @field_validator("member_ids", mode="before")
    @classmethod
    def normalise(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            v = [v]
        return [m for m in (normalise_member_id(item) for item in v) if m is not None]


class TermAssignmentSet(BaseModel):
    """
    Proposed officer assignments for one calendar year.

    Usage:
        term = TermAssignmentSet.from_mapping(
            2025,
            board={"president": "M1", "treasurer": "unassigned"},
            cadre={"president_cadre": ["M2", "M3"]},
        )
    """
    year: int = Field(..., ge=1900, le=2999)
    board: List[BoardSeat] = Field(default_factory=list)
    cadre: List[CadreSeat] = Field(default_factory=list)

    @model_validator(mode="after")
    def seats_are_consistent(self) -> "TermAssignmentSet":
        for kind, seats in (("board", self.board), ("cadre", self.cadre)):
            codes = [seat.position for seat in seats]
            repeated = sorted({code for code in codes if codes.count(code) > 1})
            if repeated:
                raise ValueError(f"{kind} positions listed more than once: {', '.join(repeated)}")
            for seat in seats:
                if seat.start_date and seat.start_date.year != self.year:
                    raise ValueError(
                        f"{seat.position} starts on {seat.start_date}, outside term {self.year}"
                    )
        return self

    @classmethod
    def from_mapping(
        cls,
        year: int,
        board: Optional[Mapping[str, Optional[str]]] = None,
        cadre: Optional[Mapping[str, Iterable[str]]] = None,
    ) -> "TermAssignmentSet":
        return cls(
            year=year,
            board=[BoardSeat(position=p, member_id=m) for p, m in (board or {}).items()],
            cadre=[CadreSeat(position=p, member_ids=list(m)) for p, m in (cadre or {}).items()],
        )

    @classmethod
    def empty(cls, year: int) -> "TermAssignmentSet":
        """All twenty-two seats, unassigned, in canonical order."""
        return cls(
            year=year,
            board=[BoardSeat(position=p) for p in BOARD_POSITIONS],
            cadre=[CadreSeat(position=p) for p in CADRE_POSITIONS],
        )

    def ordered_board(self) -> List[BoardSeat]:
        return sorted(self.board, key=lambda seat: BOARD_POSITIONS.index(seat.position))

    def ordered_cadre(self) -> List[CadreSeat]:
        return sorted(self.cadre, key=lambda seat: CADRE_POSITIONS.index(seat.position))

    @property
    def term_start(self) -> date:
        return date(self.year, 1, 1)

    @property
    def term_end(self) -> date:
        return date(self.year, 12, 31)


# ============================================================================
# Request / response schemas
# ============================================================================

class AssignPositionRequest(BaseModel):
    member_id: str = Field(..., min_length=1)
    position: str
    start_date: date
    end_date: Optional[date] = None
    is_acting: bool = False
    acting_for: Optional[str] = None

    @field_validator("position")
    @classmethod
    def known_position(cls, v: str) -> str:
        return _check_position(v)


class AssignmentUpdate(BaseModel):
    """
    Fields that may change on an existing assignment.

    Only fields that are sent are applied. ``end_date`` and ``acting_for`` may be
    cleared with null; ``is_acting`` and ``status`` may not.
    """
    end_date: Optional[date] = None
    is_acting: Optional[bool] = None
    acting_for: Optional[str] = None
    status: Optional[AssignmentStatus] = None

    @field_validator("acting_for")
    @classmethod
    def acting_for_known(cls, v: Optional[str]) -> Optional[str]:
        return _check_position(v) if v else None

    @model_validator(mode="after")
    def no_null_flags(self) -> "AssignmentUpdate":
        for name in ("is_acting", "status"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self


class EndAssignmentRequest(BaseModel):
    end_date: date


class PositionAssignmentResponse(PositionAssignment):
    id: str

    model_config = ConfigDict(from_attributes=True)


class PositionCatalogResponse(BaseModel):
    board: List[str]
    cadre: List[str]
    counterparts: Dict[str, str]

    @classmethod
    def build(cls) -> "PositionCatalogResponse":
        return cls(
            board=list(BOARD_POSITIONS),
            cadre=list(CADRE_POSITIONS),
            counterparts={code: counterpart(code) for code in BOARD_POSITIONS},
        )


class RosterEntry(BaseModel):
    position: str
    member_id: str
    member_name: str
    is_acting: bool = False
    acting_for: Optional[str] = None
    start_date: date
    end_date: Optional[date] = None


class TermRosterResponse(BaseModel):
    year: int
    board: List[RosterEntry] = []
    cadre: List[RosterEntry] = []


class TermSaveResponse(BaseModel):
    year: int
    deleted: int
    created: List[PositionAssignmentResponse]
