import logging
from abc import ABC, abstractmethod
from collections import Counter, defaultdict, deque
from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterable, Optional, Union

import graphviz
from more_itertools import unique_everseen

from fsmlab.utils import EPSILON, Symbol, is_epsilon, subset_key, subset_name

logger = logging.getLogger(__name__)

State = int


class FsmError(Exception):
    """Base class of the errors caused by bad input"""


class Variant(Enum):
    DFA = "DFA"
    NFA = "NFA"
    ENFA = "ENFA"

    @staticmethod
    def of(tag: Union["Variant", str]) -> "Variant":
        """
        >>> Variant.of('enfa')
        <Variant.ENFA: 'ENFA'>
        >>> Variant.of(Variant.DFA)
        <Variant.DFA: 'DFA'>
        """
        if isinstance(tag, Variant):
            return tag
        try:
            return Variant[tag.upper()]
        except (KeyError, AttributeError) as e:
            raise ValueError(
                f"unknown automaton variant {tag!r}: options are {[v.name for v in Variant]}"
            ) from e


class Rule(Enum):
    STRUCTURE = "structure"
    STATE_RANGE = "state range"
    SYMBOL = "symbol"
    EPSILON = "no epsilon"
    INITIAL_STATES = "initial states"
    DETERMINISM = "determinism"


class InvalidDefinition(FsmError):
    def __init__(self, variant: Variant, rule: Rule, message: str):
        super().__init__(
            f"definition of {variant.name} is not correct ({rule.value}): {message}"
        )
        self.variant = variant
        self.rule = rule


@dataclass(frozen=True, slots=True)
class Transition:
    character: Symbol
    start: State
    end: State

    def __iter__(self):
        yield from [self.character, self.start, self.end]

    def __repr__(self):
        return f"{self.start} -{self.character}-> {self.end}"


@dataclass(frozen=True, slots=True)
class AutomatonOptions:
    """
    The immutable description of an automaton

    Attributes
    ----------
    alphabet: tuple[str, ...]
        One character symbols, duplicates are dropped and the first-seen order is kept
    state_count: int
        States are the integers in [0, state_count).
        Defaults to the number of state names
    state_names: tuple[str, ...]
        Names used for display only. Defaults to q0, q1, ...
    initial_states: frozenset[State]
    final_states: frozenset[State]
    transitions: tuple[Transition, ...]
        The position of a transition is its identity when it gets highlighted

    Examples
    --------
    >>> options = AutomatonOptions("aba", state_count=2, transitions=[("a", 0, 1)])
    >>> options.alphabet, options.state_names
    (('a', 'b'), ('q0', 'q1'))
    >>> options.transitions
    (0 -a-> 1,)
    """

    alphabet: Iterable[str] = ()
    state_count: Optional[int] = None
    state_names: Optional[Iterable[str]] = None
    initial_states: Iterable[State] = ()
    final_states: Iterable[State] = ()
    transitions: Iterable[Union[Transition, tuple[Symbol, State, State]]] = ()

    def __post_init__(self):
        state_names = None if self.state_names is None else tuple(self.state_names)
        state_count = self.state_count
        if state_count is None:
            state_count = 0 if state_names is None else len(state_names)
        if state_names is None:
            state_names = tuple(f"q{state}" for state in range(state_count))

        object.__setattr__(self, "alphabet", tuple(unique_everseen(self.alphabet)))
        object.__setattr__(self, "state_count", state_count)
        object.__setattr__(self, "state_names", state_names)
        object.__setattr__(self, "initial_states", frozenset(self.initial_states))
        object.__setattr__(self, "final_states", frozenset(self.final_states))
        object.__setattr__(
            self,
            "transitions",
            tuple(
                t if isinstance(t, Transition) else Transition(*t)
                for t in self.transitions
            ),
        )


@dataclass(slots=True)
class ActiveConfiguration:
    """The states occupied while stepping, and the transitions the last step went through"""

    states: frozenset[State] = frozenset()
    traversed: tuple[int, ...] = ()


class Automaton(ABC):
    """
    A finite automaton (Q, Σ, I, F, δ) where the states Q are the integers [0, state_count)

    The structure never changes after construction, every conversion builds a new automaton.
    The only mutable part is the active configuration used to step through a word one
    symbol at a time.

    Examples
    --------
    >>> nfa = NFA(AutomatonOptions("ab", 2, None, [0], [1], [("a", 0, 0), ("b", 0, 0), ("b", 0, 1)]))
    >>> nfa.accepts_word("aab")
    True
    >>> nfa.accepts_word("aba")
    False
    >>> nfa.reset()
    >>> nfa.read_char("b")
    >>> sorted(nfa.active_states), nfa.traversed_transitions, nfa.is_accepted()
    ([0, 1], (1, 2), True)
    """

    variant: Variant

    __slots__ = ("_options", "_outgoing", "configuration")

    def __init__(self, options: AutomatonOptions):
        self._options = options
        self.validate()
        self._outgoing = self._index_transitions()
        self.configuration = ActiveConfiguration()
        self.reset()
        logger.debug(
            "built %s with %d states and %d transitions",
            self.variant.name,
            self.state_count,
            len(self.transitions),
        )

    @property
    def options(self) -> AutomatonOptions:
        return self._options

    @property
    def alphabet(self) -> tuple[str, ...]:
        return self._options.alphabet

    @property
    def state_count(self) -> int:
        return self._options.state_count

    @property
    def state_names(self) -> tuple[str, ...]:
        return self._options.state_names

    @property
    def initial_states(self) -> frozenset[State]:
        return self._options.initial_states

    @property
    def final_states(self) -> frozenset[State]:
        return self._options.final_states

    @property
    def transitions(self) -> tuple[Transition, ...]:
        return self._options.transitions

    @property
    def active_states(self) -> frozenset[State]:
        return self.configuration.states

    highlighted_states = active_states

    @property
    def traversed_transitions(self) -> tuple[int, ...]:
        return self.configuration.traversed

    # validation

    @abstractmethod
    def validate(self) -> None:
        """
        Check the well-formedness rules of this variant

        Raises
        ------
        InvalidDefinition
            On the first rule that is violated
        """
        ...

    def _fail(self, rule: Rule, message: str):
        raise InvalidDefinition(self.variant, rule, message)

    def _check_structure(self, allow_epsilon: bool) -> None:
        if self.state_count < 0:
            self._fail(Rule.STRUCTURE, f"negative state count {self.state_count}")
        if len(self.state_names) != self.state_count:
            self._fail(
                Rule.STRUCTURE,
                f"{len(self.state_names)} state names given for {self.state_count} states",
            )
        for symbol in self.alphabet:
            if not isinstance(symbol, str) or len(symbol) != 1:
                self._fail(
                    Rule.STRUCTURE,
                    f"alphabet symbol {symbol!r} is not a single character",
                )

        for kind, states in (
            ("initial", self.initial_states),
            ("final", self.final_states),
        ):
            for state in states:
                if not 0 <= state < self.state_count:
                    self._fail(
                        Rule.STATE_RANGE, f"{kind} state {state} was never declared"
                    )

        alphabet = set(self.alphabet)
        for index, transition in enumerate(self.transitions):
            character, start, end = transition
            if not (0 <= start < self.state_count and 0 <= end < self.state_count):
                self._fail(
                    Rule.STATE_RANGE,
                    f"transition {index} ({transition}) leaves [0, {self.state_count})",
                )
            if is_epsilon(character):
                if not allow_epsilon:
                    self._fail(Rule.EPSILON, f"transition {index} ({transition}) is ε")
            elif character not in alphabet:
                self._fail(
                    Rule.SYMBOL,
                    f"transition {index} ({transition}) reads {character!r} "
                    f"which is not in the alphabet",
                )

    def _check_has_initial_state(self) -> None:
        if not self.initial_states:
            self._fail(Rule.INITIAL_STATES, "at least one initial state is required")

    # simulation

    def _index_transitions(self) -> dict[tuple[State, Symbol], list[int]]:
        outgoing = defaultdict(list)
        for index, (character, start, _) in enumerate(self.transitions):
            outgoing[(start, character)].append(index)
        return dict(outgoing)

    def transitions_from(self, state: State, symbol: Symbol) -> list[int]:
        """Indices of the transitions leaving `state` on `symbol`"""
        return self._outgoing.get((state, symbol), [])

    def _close(self, states: Iterable[State]) -> tuple[frozenset[State], list[int]]:
        closure = set(states)
        frontier = deque(sorted(closure))
        followed: list[int] = []

        while frontier:
            state = frontier.popleft()
            for index in self.transitions_from(state, EPSILON):
                followed.append(index)
                if (end := self.transitions[index].end) not in closure:
                    closure.add(end)
                    frontier.append(end)

        return frozenset(closure), followed

    def epsilon_closure(self, states: Iterable[State]) -> frozenset[State]:
        """
        This is the set of all the states which can be reached by following ε labeled edges
        This is done here using a breadth first search

        >>> enfa = ENFA(AutomatonOptions("", 3, None, [0], [2], [(EPSILON, 0, 1), (EPSILON, 1, 0)]))
        >>> sorted(enfa.epsilon_closure([0]))
        [0, 1]
        """
        return self._close(states)[0]

    def move(self, states: Iterable[State], symbol: Symbol) -> frozenset[State]:
        return frozenset(
            self.transitions[index].end
            for state in states
            for index in self.transitions_from(state, symbol)
        )

    def step(
        self, states: Iterable[State], symbol: str
    ) -> tuple[frozenset[State], tuple[int, ...]]:
        """
        Read `symbol` from the set of `states`

        Returns
        -------
        tuple[frozenset[State], tuple[int, ...]]
            The ε-closed set of states reached, and the indices of the transitions which were
            traversed: those reading `symbol` followed by the ε-transitions of the closure

        Notes
        -----
        The source set is ε-closed before reading, so `step({i}, c)` is correct for any `i`.
        This method does not touch the active configuration.
        """
        if is_epsilon(symbol):
            raise ValueError("cannot read ε, it is not an input symbol")
        source = sorted(self.epsilon_closure(states))
        used = [index for state in source for index in self.transitions_from(state, symbol)]
        reached, followed = self._close(self.transitions[index].end for index in used)
        return reached, tuple(unique_everseen(used + followed))

    def reset(self) -> None:
        self.configuration.states = self.epsilon_closure(self.initial_states)
        self.configuration.traversed = ()

    def read_char(self, symbol: str) -> None:
        states, traversed = self.step(self.configuration.states, symbol)
        self.configuration.states = states
        self.configuration.traversed = traversed

    def is_accepted(self) -> bool:
        return not self.configuration.states.isdisjoint(self.final_states)

    def accepts_word(self, word: str) -> bool:
        self.reset()
        for char in word:
            if not self.configuration.states:
                return False
            self.read_char(char)
        return self.is_accepted()

    def accepts_words(self, words: Iterable[str]) -> dict[str, bool]:
        return {word: self.accepts_word(word) for word in words}

    # conversions

    @abstractmethod
    def to_nfa(self) -> "Automaton":
        ...

    @abstractmethod
    def to_dfa(self) -> "Automaton":
        ...

    def graph(self) -> graphviz.Digraph:
        """
        A DOT description of this automaton

        Active states are filled in red, and the transitions traversed by the last step are drawn in red
        """
        dot = graphviz.Digraph(self.variant.name, format="pdf", engine="dot")
        dot.attr("graph", rankdir="LR")
        dot.attr("node", fontname="verdana")
        dot.attr("edge", fontname="verdana")

        for state, name in enumerate(self.state_names):
            dot.node(
                str(state),
                label=name,
                shape="doublecircle" if state in self.final_states else "circle",
                style="filled",
                fillcolor="red" if state in self.active_states else "white",
            )

        for entry, state in enumerate(sorted(self.initial_states)):
            dot.node(f"start{entry}", shape="point")
            dot.edge(f"start{entry}", str(state), arrowhead="vee")

        traversed = set(self.traversed_transitions)
        for index, (character, start, end) in enumerate(self.transitions):
            dot.edge(
                str(start),
                str(end),
                label=str(character),
                color="red" if index in traversed else "black",
            )
        return dot

    def __repr__(self):
        return (
            f"{self.__class__.__name__}(states={self.state_names}, "
            f"alphabet={self.alphabet}, "
            f"initial_states={sorted(self.initial_states)}, "
            f"final_states={sorted(self.final_states)}, "
            f"transitions={list(self.transitions)})"
        )


class DFA(Automaton):
    variant = Variant.DFA

    __slots__ = ()

    def validate(self) -> None:
        self._check_structure(allow_epsilon=False)
        if len(self.initial_states) != 1:
            self._fail(
                Rule.INITIAL_STATES,
                f"exactly one initial state is required, got {len(self.initial_states)}",
            )
        counts = Counter((start, character) for character, start, _ in self.transitions)
        for state in range(self.state_count):
            for symbol in self.alphabet:
                if counts[(state, symbol)] != 1:
                    self._fail(
                        Rule.DETERMINISM,
                        f"state {self.state_names[state]!r} has {counts[(state, symbol)]} "
                        f"transitions on {symbol!r} instead of one",
                    )

    @property
    def initial_state(self) -> State:
        (state,) = self.initial_states
        return state

    def to_nfa(self) -> "NFA":
        return NFA(self.options)

    def to_dfa(self) -> "DFA":
        return self


class NFA(Automaton):
    variant = Variant.NFA

    __slots__ = ()

    def validate(self) -> None:
        self._check_structure(allow_epsilon=False)
        self._check_has_initial_state()

    def to_nfa(self) -> "NFA":
        return self

    def to_dfa(self) -> DFA:
        """
        Subset construction

        Every DFA state stands for a set of NFA states. Sets are discovered breadth first,
        so the numbering of the DFA states only depends on the NFA. An empty set becomes
        an ordinary (dead) state which loops onto itself on every symbol.

        >>> nfa = NFA(AutomatonOptions("ab", 2, None, [0], [1], [("a", 0, 0), ("b", 0, 0), ("b", 0, 1)]))
        >>> dfa = nfa.to_dfa()
        >>> dfa.state_names
        ('{q0}', '{q0,q1}')
        >>> dfa.accepts_word("abab")
        True
        """
        start = subset_key(self.initial_states)
        subsets: list[tuple[State, ...]] = [start]
        subset2index: dict[tuple[State, ...], State] = {start: 0}
        transitions: list[Transition] = []

        queue = deque([start])
        while queue:
            subset = queue.popleft()
            for symbol in self.alphabet:
                target = subset_key(self.move(subset, symbol))
                if target not in subset2index:
                    if not target:
                        logger.debug("subset construction added a dead state")
                    subset2index[target] = len(subsets)
                    subsets.append(target)
                    queue.append(target)
                transitions.append(
                    Transition(symbol, subset2index[subset], subset2index[target])
                )

        logger.debug(
            "subset construction: %d NFA states -> %d DFA states",
            self.state_count,
            len(subsets),
        )
        return DFA(
            AutomatonOptions(
                alphabet=self.alphabet,
                state_names=[
                    subset_name(self.state_names[state] for state in subset)
                    for subset in subsets
                ],
                initial_states=[0],
                final_states=[
                    index
                    for index, subset in enumerate(subsets)
                    if not self.final_states.isdisjoint(subset)
                ],
                transitions=transitions,
            )
        )


class ENFA(Automaton):
    variant = Variant.ENFA

    __slots__ = ()

    def validate(self) -> None:
        self._check_structure(allow_epsilon=True)
        self._check_has_initial_state()

    def to_nfa(self) -> NFA:
        """
        ε elimination

        Construct a transition i -c-> j whenever j is reachable from i by reading c,
        with any number of ε-transitions before and after reading it
        """
        final_states = set(self.final_states)
        final_states.update(
            state
            for state in self.initial_states
            if not self.epsilon_closure([state]).isdisjoint(self.final_states)
        )

        transitions: list[Transition] = []
        for state in range(self.state_count):
            for symbol in self.alphabet:
                reached, _ = self.step([state], symbol)
                transitions.extend(Transition(symbol, state, end) for end in sorted(reached))

        logger.debug(
            "ε elimination: %d transitions -> %d transitions",
            len(self.transitions),
            len(transitions),
        )
        return NFA(
            replace(
                self.options,
                initial_states=self.epsilon_closure(self.initial_states),
                final_states=final_states,
                transitions=transitions,
            )
        )

    def to_dfa(self) -> DFA:
        return self.to_nfa().to_dfa()


VARIANTS: dict[Variant, type[Automaton]] = {
    Variant.DFA: DFA,
    Variant.NFA: NFA,
    Variant.ENFA: ENFA,
}


def make_automaton(
    variant: Union[Variant, str],
    options: Optional[AutomatonOptions] = None,
    **fields,
) -> Automaton:
    """
    Build an automaton of the given variant, from `options` or from the keyword arguments of AutomatonOptions

    Raises
    ------
    InvalidDefinition
        If the definition breaks one of the rules of the variant

    Examples
    --------
    >>> make_automaton("dfa", alphabet="a", state_count=1, initial_states=[0], transitions=[("a", 0, 0)])
    DFA(states=('q0',), alphabet=('a',), initial_states=[0], final_states=[], transitions=[0 -a-> 0])
    """
    if options is None:
        options = AutomatonOptions(**fields)
    return VARIANTS[Variant.of(variant)](options)
