"""
Thompson's construction

Every function builds a fresh ε-NFA out of fresh ε-NFAs. States of the operands are
renumbered with an offset so that no two operands ever share a state, and the states
added by a construction are appended after the states of its operands.
"""
from itertools import chain
from typing import Iterable

from fsmlab.fsm import ENFA, AutomatonOptions, State, Transition
from fsmlab.utils import EPSILON, Fragment


def _shifted(transitions: Iterable[Transition], offset: int) -> list[Transition]:
    return [
        Transition(character, start + offset, end + offset)
        for character, start, end in transitions
    ]


def _link(sources: Iterable[State], targets: Iterable[State]) -> list[Transition]:
    targets = sorted(targets)
    return [
        Transition(EPSILON, source, target)
        for source in sorted(sources)
        for target in targets
    ]


def _enclose(automaton: ENFA, label: str, loop: bool, bypass: bool) -> ENFA:
    fragment = Fragment(automaton.state_count, automaton.state_count + 1)

    transitions = list(automaton.transitions)
    transitions += _link([fragment.start], automaton.initial_states)
    transitions += _link(automaton.final_states, [fragment.end])
    if loop:
        transitions += _link(automaton.final_states, automaton.initial_states)
    if bypass:
        transitions += _link([fragment.start], [fragment.end])

    return ENFA(
        AutomatonOptions(
            alphabet=automaton.alphabet,
            state_names=automaton.state_names + (f"I{label}", f"F{label}"),
            initial_states=[fragment.start],
            final_states=[fragment.end],
            transitions=transitions,
        )
    )


def base(symbol: str, label: str = "") -> ENFA:
    """
    >>> base('a', 'S0')
    ENFA(states=('IS0', 'FS0'), alphabet=('a',), initial_states=[0], final_states=[1], transitions=[0 -a-> 1])
    """
    return ENFA(
        AutomatonOptions(
            alphabet=[symbol],
            state_names=[f"I{label}", f"F{label}"],
            initial_states=[0],
            final_states=[1],
            transitions=[Transition(symbol, 0, 1)],
        )
    )


def concatenate(first: ENFA, second: ENFA) -> ENFA:
    offset = first.state_count
    second_initial_states = [state + offset for state in second.initial_states]
    return ENFA(
        AutomatonOptions(
            alphabet=chain(first.alphabet, second.alphabet),
            state_names=first.state_names + second.state_names,
            initial_states=first.initial_states,
            final_states=[state + offset for state in second.final_states],
            transitions=chain(
                first.transitions,
                _shifted(second.transitions, offset),
                _link(first.final_states, second_initial_states),
            ),
        )
    )


def alternation(lower: ENFA, upper: ENFA, label: str = "") -> ENFA:
    offset = lower.state_count
    fragment = Fragment(offset + upper.state_count, offset + upper.state_count + 1)
    initial_states = chain(
        lower.initial_states, (state + offset for state in upper.initial_states)
    )
    final_states = chain(
        lower.final_states, (state + offset for state in upper.final_states)
    )
    return ENFA(
        AutomatonOptions(
            alphabet=chain(lower.alphabet, upper.alphabet),
            state_names=lower.state_names
            + upper.state_names
            + (f"I{label}", f"F{label}"),
            initial_states=[fragment.start],
            final_states=[fragment.end],
            transitions=chain(
                lower.transitions,
                _shifted(upper.transitions, offset),
                _link([fragment.start], initial_states),
                _link(final_states, [fragment.end]),
            ),
        )
    )


def zero_or_more(automaton: ENFA, label: str = "") -> ENFA:
    return _enclose(automaton, label, loop=True, bypass=True)


def one_or_more(automaton: ENFA, label: str = "") -> ENFA:
    return _enclose(automaton, label, loop=True, bypass=False)


def zero_or_one(automaton: ENFA, label: str = "") -> ENFA:
    return _enclose(automaton, label, loop=False, bypass=True)
