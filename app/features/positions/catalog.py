"""
Board and cadre position codes.

Board positions are the elected chapter officers; each has exactly one cadre
counterpart (its supporting team) named ``<board>_cadre``. The order below is
the canonical display order and is not alphabetical.
"""
from typing import Dict, List, Tuple

CADRE_SUFFIX = "_cadre"

BOARD_POSITIONS: Tuple[str, ...] = (
    "president",
    "mentor",
    "legal_advisor",
    "secretary",
    "treasurer",
    "acting_president",
    "vp_personal_development",
    "vp_business_development",
    "vp_community_development",
    "vp_international_development",
    "vp_chapter_management",
)

CADRE_POSITIONS: Tuple[str, ...] = tuple(f"{code}{CADRE_SUFFIX}" for code in BOARD_POSITIONS)

_COUNTERPARTS: Dict[str, str] = {
    **dict(zip(BOARD_POSITIONS, CADRE_POSITIONS)),
    **dict(zip(CADRE_POSITIONS, BOARD_POSITIONS)),
}

if len(BOARD_POSITIONS) != len(CADRE_POSITIONS) or len(_COUNTERPARTS) != 2 * len(BOARD_POSITIONS):
    raise RuntimeError("Board and cadre position lists are out of step")


class UnknownPosition(ValueError):
    def __init__(self, code: str):
        super().__init__(f"Unknown position code: {code!r}")
        self.code = code


def is_position(code: str) -> bool:
    return code in _COUNTERPARTS


def is_cadre(code: str) -> bool:
    if code not in _COUNTERPARTS:
        raise UnknownPosition(code)
    return code.endswith(CADRE_SUFFIX)


def is_board(code: str) -> bool:
    return not is_cadre(code)


def counterpart(code: str) -> str:
    """Board code <-> cadre code."""
    try:
        return _COUNTERPARTS[code]
    except KeyError:
        raise UnknownPosition(code) from None


def ordered_positions() -> List[str]:
    """All eleven board codes followed by the eleven cadre codes."""
    return [*BOARD_POSITIONS, *CADRE_POSITIONS]
