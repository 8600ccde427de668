"""
Role, module and action catalogs.

Roles come in two disjoint kinds: membership categories (who you are in the
chapter) and positions (the office you currently hold). The kind is carried on
each ``Role`` member, so the classification cannot drift from the catalog.
"""
import enum
from typing import List


class RoleKind(str, enum.Enum):
    CATEGORY = "category"
    POSITION = "position"


class Role(str, enum.Enum):
    """
    Every role known to the policy, in display order.

    Usage:
        Role("treasurer").kind  # RoleKind.POSITION
    """
    kind: RoleKind

    def __new__(cls, value: str, kind: RoleKind):
        obj = str.__new__(cls, value)
        obj._value_ = value
        obj.kind = kind
        return obj

    # Membership categories
    DEVELOPER = ("developer", RoleKind.CATEGORY)
    ADMINISTRATOR = ("administrator", RoleKind.CATEGORY)
    OFFICIAL_MEMBER = ("official_member", RoleKind.CATEGORY)
    ASSOCIATE_MEMBER = ("associate_member", RoleKind.CATEGORY)
    HONORARY_MEMBER = ("honorary_member", RoleKind.CATEGORY)
    AFFILIATE_MEMBER = ("affiliate_member", RoleKind.CATEGORY)
    VISITOR_MEMBER = ("visitor_member", RoleKind.CATEGORY)

    # Positions
    PRESIDENT = ("president", RoleKind.POSITION)
    ACTING_PRESIDENT = ("acting_president", RoleKind.POSITION)
    SECRETARY_GENERAL = ("secretary_general", RoleKind.POSITION)
    TREASURER = ("treasurer", RoleKind.POSITION)
    ADVISOR_PRESIDENT = ("advisor_president", RoleKind.POSITION)
    VICE_PRESIDENT = ("vice_president", RoleKind.POSITION)
    DEPARTMENT_HEAD = ("department_head", RoleKind.POSITION)


class Module(str, enum.Enum):
    MEMBER_MANAGEMENT = "member_management"
    EVENT_MANAGEMENT = "event_management"
    FINANCE_MANAGEMENT = "finance_management"
    MESSAGING = "messaging"
    PROFILE = "profile"


class Action(str, enum.Enum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


def role_kind(role: Role) -> RoleKind:
    return role.kind


def category_roles() -> List[Role]:
    return [role for role in Role if role.kind is RoleKind.CATEGORY]


def position_roles() -> List[Role]:
    return [role for role in Role if role.kind is RoleKind.POSITION]
