"""
Permission policy: (role, module, action) -> allowed.

The policy is a plain lookup into ``RULES``, a fixed table mapping each role
to the actions it may perform per module. Two super roles bypass the table
entirely. Anything the table does not grant is denied.
"""
from typing import Dict, FrozenSet, Iterable, List

from app.features.permissions.catalog import Action, Module, Role


C, R, U, D = Action.CREATE, Action.READ, Action.UPDATE, Action.DELETE
CRUD: FrozenSet[Action] = frozenset({C, R, U, D})
NONE: FrozenSet[Action] = frozenset()

# Developer is the system owner; administrator runs the chapter install.
SUPER_ROLES: FrozenSet[Role] = frozenset({Role.DEVELOPER, Role.ADMINISTRATOR})


def _rules(
    member: Iterable[Action],
    event: Iterable[Action],
    finance: Iterable[Action],
    messaging: Iterable[Action],
    profile: Iterable[Action],
) -> Dict[Module, FrozenSet[Action]]:
    return {
        Module.MEMBER_MANAGEMENT: frozenset(member),
        Module.EVENT_MANAGEMENT: frozenset(event),
        Module.FINANCE_MANAGEMENT: frozenset(finance),
        Module.MESSAGING: frozenset(messaging),
        Module.PROFILE: frozenset(profile),
    }


_ORDINARY_MEMBER = _rules({R}, {R}, NONE, {R}, {R, U})

RULES: Dict[Role, Dict[Module, FrozenSet[Action]]] = {
    Role.PRESIDENT: _rules(CRUD, CRUD, CRUD, CRUD, CRUD),
    Role.ACTING_PRESIDENT: _rules(CRUD, CRUD, CRUD, CRUD, CRUD),
    Role.SECRETARY_GENERAL: _rules(CRUD, CRUD, {R}, CRUD, CRUD),
    Role.TREASURER: _rules({R, U}, {R}, CRUD, {R}, {R, U}),
    Role.ADVISOR_PRESIDENT: _rules({R}, {R}, {R}, {R}, {R}),
    Role.VICE_PRESIDENT: _rules({C, R, U}, CRUD, {R}, {C, R, U}, {C, R, U}),
    Role.DEPARTMENT_HEAD: _rules({R, U}, CRUD, {R}, {R, U}, {R, U}),
    Role.OFFICIAL_MEMBER: _ORDINARY_MEMBER,
    Role.ASSOCIATE_MEMBER: _ORDINARY_MEMBER,
    Role.HONORARY_MEMBER: _ORDINARY_MEMBER,
    Role.AFFILIATE_MEMBER: _ORDINARY_MEMBER,
    Role.VISITOR_MEMBER: _rules({R}, {R}, NONE, {R}, {R}),
}


def is_super_role(role: Role) -> bool:
    return role in SUPER_ROLES


def granted_actions(role: Role, module: Module) -> FrozenSet[Action]:
    """Actions ``role`` may perform on ``module``."""
    if role in SUPER_ROLES:
        return CRUD
    return RULES.get(role, {}).get(module, NONE)


def evaluate(role: Role, module: Module, action: Action) -> bool:
    """
    Decide whether ``role`` may perform ``action`` on ``module``.

    Super roles are always allowed. A (role, module) pair missing from the
    table is denied rather than treated as an error.
    """
    if role in SUPER_ROLES:
        return True
    return action in RULES.get(role, {}).get(module, NONE)


def evaluate_any(roles: Iterable[Role], module: Module, action: Action) -> bool:
    """An actor holding several roles is allowed if any one of them is."""
    return any(evaluate(role, module, action) for role in roles)


def rule_table() -> Dict[str, object]:
    """JSON-serialisable dump of the policy for auditing."""
    table: Dict[str, Dict[str, List[str]]] = {}
    for role, modules in RULES.items():
        table[role.value] = {
            module.value: sorted(action.value for action in actions)
            for module, actions in modules.items()
        }
    return {
        "super_roles": sorted(role.value for role in SUPER_ROLES),
        "rules": table,
    }
