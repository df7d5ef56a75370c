"""
Argument groups and their constraint evaluation.

A Group ties arguments (and nested groups) of one command together under a
restriction:

- NONE: informational only, always satisfied.
- EXACTLY_ONE: exactly one member present.
- AT_LEAST_ONE: one or more members present.
- ALL: every member present.

Members are Argument specs, nested Groups, or argument keys (strings) that
the owning command resolves when it is built.

Evaluation runs once per resolved command, after defaults are applied, and
only looks at arguments explicitly given on the command line. Nested groups
are evaluated first; a nested group counts as a present member of its parent
when its own restriction holds, so an untouched NONE group always counts. A
nested group reports its own violation only when it was touched (at least
one of its own members is present); otherwise its parent decides. Top-level
groups always apply their restriction.

Each violated group yields exactly one GroupConstraintError, whatever the
number of offending members.
"""
import enum
import functools
import operator

from .faults import GroupConstraintError, GroupViolation
from .utils import *


class Restriction(enum.Enum):
    """Logical restriction of a group over its members."""
    NONE = "none"
    EXACTLY_ONE = "exactly-one"
    AT_LEAST_ONE = "at-least-one"
    ALL = "all"

    @classmethod
    def _missing_(cls, value):
        # Accept "EXACTLY_ONE", "exactly_one" and "exactly-one" alike.
        if isinstance(value, str):
            return cls.__members__.get(value.strip().upper().replace("-", "_"))
        return None


class Group:
    """
    Constraint group over arguments and nested groups of a single command.

    Groups are immutable; nesting is fixed at construction, so a group can
    never contain itself. Reusing one group under two parents is rejected by
    the owning command.
    """

    __introspectable__ = (
        "restriction",
        "members",
        "name",
        "descr",
    )

    restriction = mirror("restriction")
    members = mirror("members")
    name = mirror("name")
    descr = mirror("descr")

    def __init__(self, restriction, /, *members, name=Unset, descr=Unset):
        try:
            self._restriction = Restriction(restriction)
        except ValueError:
            raise ValueError(f"group 'restriction' {restriction!r} is not a valid restriction") from None
        if not members:
            raise TypeError("group must specify at least one member")
        for member in members:
            if not isinstance(member, str | Group) and not hasattr(member, "__argument__"):
                raise TypeError("group members must be arguments, groups or argument keys")
        if len(set(map(id, members))) != len(members):
            raise ValueError("group members cannot contain duplicates")
        if not isinstance(name, str | Unset):
            raise TypeError("group 'name' must be a string")
        if not isinstance(descr, str | Unset):
            raise TypeError("group 'descr' must be a string")
        self._members = members
        self._name = coalesce(name)
        self._descr = coalesce(descr)

    def walk(self):
        """
        Yield this group and every nested group, parents before children.
        """
        yield self
        for member in self._members:
            if isinstance(member, Group):
                yield from member.walk()

    def __repr__(self):
        return f"group({', '.join(map(functools.partial(operator.mod, '%s=%r'), self.__rich_repr__()))})"

    def __rich_repr__(self):
        for name in self.__introspectable__:
            yield name, getattr(self, name)


def label(group, keyof, labelof, /):
    """
    Human label for a group: its name, or its members joined by the restriction.
    """
    if group.name:
        return group.name
    glue = " | " if group.restriction in (Restriction.EXACTLY_ONE, Restriction.AT_LEAST_ONE) else ", "
    return "(" + glue.join(_labels(group.members, keyof, labelof)) + ")"


def _labels(members, keyof, labelof):
    for member in members:
        if isinstance(member, Group):
            yield label(member, keyof, labelof)
        else:
            yield labelof(keyof(member))


def evaluate(groups, present, keyof, labelof, /, **options):
    """
    Evaluate top-level *groups* against the set of *present* argument keys.

    Parameters
    - groups: top-level groups of a command, in declaration order.
    - present: keys of the arguments given on the command line.
    - keyof: maps a member (argument spec or key string) to its key.
    - labelof: maps a key to a human label.
    - options: forwarded to every fault (command, colorful, fancy, ...).

    Returns
    - list of GroupConstraintError, nested groups' faults before their
      parents', siblings in declaration order.
    """
    faults = []
    for group in groups:
        _evaluate(group, present, keyof, labelof, faults, options, top=True)
    return faults


def _evaluate(group, present, keyof, labelof, faults, options, *, top):
    """
    Returns (touched, satisfied) for *group*, appending its fault if violated.
    """
    touched = False
    satisfied = []
    for member in group.members:
        if isinstance(member, Group):
            inner, ok = _evaluate(member, present, keyof, labelof, faults, options, top=False)
            touched |= inner
            satisfied.append(ok)
        else:
            given = keyof(member) in present
            touched |= given
            satisfied.append(given)

    count = sum(satisfied)
    match group.restriction:
        case Restriction.EXACTLY_ONE if count == 0:
            reason = GroupViolation.NONE_SATISFIED
        case Restriction.EXACTLY_ONE if count > 1:
            reason = GroupViolation.MULTIPLE_SATISFIED
        case Restriction.AT_LEAST_ONE if count == 0:
            reason = GroupViolation.NONE_SATISFIED
        case Restriction.ALL if count < len(satisfied):
            reason = GroupViolation.MISSING_MEMBER
        case _:
            return touched, True

    if top or touched:
        members = tuple(_labels(group.members, keyof, labelof))
        faults.append(GroupConstraintError(
            reason=reason,
            restriction=group.restriction.value,
            group=label(group, keyof, labelof),
            members=members,
            given=tuple(member for member, ok in zip(members, satisfied) if ok),
            missing=tuple(member for member, ok in zip(members, satisfied) if not ok),
            **options,
        ))
    return touched, False


__all__ = (
    # Public API surface for consumers of sextant.groups.
    "Group",
    "Restriction",
    "evaluate",
)
