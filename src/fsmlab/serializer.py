import json
from typing import Any, Final, Mapping, Optional, Union

from fsmlab.fsm import (
    Automaton,
    AutomatonOptions,
    FsmError,
    Transition,
    Variant,
    make_automaton,
)
from fsmlab.utils import EPSILON, Symbol, is_epsilon

EPSILON_TOKEN: Final[str] = "EPSILON"


class SerializationError(FsmError):
    ...


def decode_symbol(value: Any) -> Symbol:
    if value == EPSILON_TOKEN:
        return EPSILON
    if not isinstance(value, str):
        raise SerializationError(f"expected a one character string, got {value!r}")
    return value


def encode_symbol(symbol: Symbol) -> str:
    return EPSILON_TOKEN if is_epsilon(symbol) else symbol


def _decode_state(value: Any) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise SerializationError(f"expected a state index, got {value!r}")
    return value


def load_automaton(
    payload: Mapping[str, Any], variant: Optional[Union[Variant, str]] = None
) -> Automaton:
    """
    Build an automaton from the import schema

    Parameters
    ----------
    payload: Mapping[str, Any]
        {
            "stateNames": [str],
            "finalStates": [int],
            "initialStates": [int],
            "alphabet": [str],
            "transitions": [{"character": str, "from": int, "to": int}],
        }
        The token "EPSILON" stands for ε, wherever a symbol is expected
    variant: Variant | str | None
        Falls back to payload["variant"] when missing

    Raises
    ------
    SerializationError
        If the payload does not follow the schema
    InvalidDefinition
        If the automaton it describes is not a valid automaton of the variant

    Examples
    --------
    >>> load_automaton({
    ...     "stateNames": ["p", "q"],
    ...     "finalStates": [1],
    ...     "initialStates": [0],
    ...     "alphabet": ["a", "EPSILON"],
    ...     "transitions": [{"character": "EPSILON", "from": 0, "to": 1}],
    ... }, "enfa")
    ENFA(states=('p', 'q'), alphabet=('a',), initial_states=[0], final_states=[1], transitions=[0 -ε-> 1])
    """
    if variant is None:
        variant = payload.get("variant")
    if variant is None:
        raise SerializationError("the variant of the automaton is required")
    try:
        variant = Variant.of(variant)
    except ValueError as e:
        raise SerializationError(str(e)) from e

    try:
        state_names = [str(name) for name in payload["stateNames"]]
        options = AutomatonOptions(
            alphabet=[
                symbol
                for symbol in map(decode_symbol, payload["alphabet"])
                if not is_epsilon(symbol)
            ],
            state_count=len(state_names),
            state_names=state_names,
            initial_states=map(_decode_state, payload["initialStates"]),
            final_states=map(_decode_state, payload["finalStates"]),
            transitions=[
                Transition(
                    decode_symbol(transition["character"]),
                    _decode_state(transition["from"]),
                    _decode_state(transition["to"]),
                )
                for transition in payload["transitions"]
            ],
        )
    except KeyError as e:
        raise SerializationError(f"missing field {e.args[0]!r}") from e
    except TypeError as e:
        raise SerializationError(f"malformed automaton: {e}") from e
    return make_automaton(variant, options)


def loads_automaton(
    text: str, variant: Optional[Union[Variant, str]] = None
) -> Automaton:
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise SerializationError(f"invalid JSON: {e}") from e
    if not isinstance(payload, Mapping):
        raise SerializationError("expected a JSON object")
    return load_automaton(payload, variant)


def dump_automaton(automaton: Automaton) -> dict[str, Any]:
    return {
        "variant": automaton.variant.name,
        "stateNames": list(automaton.state_names),
        "finalStates": sorted(automaton.final_states),
        "initialStates": sorted(automaton.initial_states),
        "alphabet": list(automaton.alphabet),
        "transitions": [
            {"character": encode_symbol(character), "from": start, "to": end}
            for character, start, end in automaton.transitions
        ],
    }


class AutomatonEncoder(json.JSONEncoder):
    def default(self, o: Any) -> Any:
        if isinstance(o, Automaton):
            return dump_automaton(o)
        if isinstance(o, Transition):
            return {"character": encode_symbol(o.character), "from": o.start, "to": o.end}
        if isinstance(o, (set, frozenset)):
            return sorted(o)
        if is_epsilon(o):
            return EPSILON_TOKEN
        return json.JSONEncoder.default(self, o)


def dumps_automaton(automaton: Automaton, indent: Optional[int] = None) -> str:
    return json.dumps(automaton, cls=AutomatonEncoder, indent=indent)
