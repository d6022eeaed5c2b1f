from enum import Enum
from typing import Final, Generic, Iterable, NamedTuple, TypeVar, Union

T = TypeVar("T")


class Fragment(NamedTuple, Generic[T]):
    start: T
    end: T


class _Epsilon(Enum):
    EPSILON = "ε"

    def __repr__(self):
        return "EPSILON"

    def __str__(self):
        return self.value


# not a str, so it can never collide with a member of an alphabet
EPSILON: Final[_Epsilon] = _Epsilon.EPSILON

Symbol = Union[str, _Epsilon]


def is_epsilon(symbol: Symbol) -> bool:
    return symbol is EPSILON


def subset_key(states: Iterable[int]) -> tuple[int, ...]:
    """
    Canonical key of a set of states: the sorted, duplicate free tuple of its indices

    Examples
    --------
    >>> subset_key({3, 1, 2, 1})
    (1, 2, 3)
    >>> subset_key([])
    ()
    """
    return tuple(sorted(set(states)))


def subset_name(names: Iterable[str]) -> str:
    """
    >>> subset_name(['q0', 'q2'])
    '{q0,q2}'
    >>> subset_name([])
    '∅'
    """
    names = list(names)
    if not names:
        return "∅"
    return "{" + ",".join(names) + "}"
