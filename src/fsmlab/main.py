import json
import logging
from typing import IO, Optional

import click
from tqdm import tqdm

from fsmlab.fsm import Automaton, FsmError
from fsmlab.parser import regex_to_automaton
from fsmlab.serializer import AutomatonEncoder, loads_automaton

logger = logging.getLogger(__name__)

TARGETS = ("enfa", "nfa", "dfa")


def convert(automaton: Automaton, target: Optional[str]) -> Automaton:
    match target:
        case None | "enfa":
            return automaton
        case "nfa":
            return automaton.to_nfa()
        case "dfa":
            return automaton.to_dfa()
        case _:
            raise ValueError(f"unknown target {target!r}: options are {TARGETS}")


def run(
    automaton: Automaton,
    words: tuple[str, ...],
    input_file: Optional[IO],
    out: IO,
    target: Optional[str],
    graph: Optional[IO],
    debug: bool,
) -> None:
    automaton = convert(automaton, target)
    words = list(words)
    if input_file is not None:
        words.extend(line.rstrip("\n") for line in input_file)

    results = {}
    for word in tqdm(words, disable=not debug, desc="words"):
        results[word] = automaton.accepts_word(word)
        logger.debug("%r accepted: %s", word, results[word])

    if graph is not None:
        automaton.reset()
        graph.write(automaton.graph().source)

    with out:
        out.write(
            json.dumps(
                {"automaton": automaton, "results": results},
                cls=AutomatonEncoder,
                indent=4,
            )
        )


def configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def common_options(command):
    options = [
        click.option(
            "--word", "-w", "words", multiple=True, help="Word to test, can be repeated"
        ),
        click.option(
            "--input-file",
            type=click.File(),
            default=None,
            help="File with one word to test per line",
        ),
        click.option(
            "--out", "-o", type=click.File("w"), default="-", help="Output file"
        ),
        click.option(
            "--to",
            "target",
            type=click.Choice(TARGETS, case_sensitive=False),
            default=None,
            help="Variant to convert the automaton to before testing",
        ),
        click.option(
            "--graph",
            type=click.File("w"),
            default=None,
            help="Write the DOT description of the automaton to this file",
        ),
        click.option(
            "--debug",
            "-g",
            is_flag=True,
            show_default=True,
            default=False,
            help="Turn on debug mode",
        ),
    ]
    for option in reversed(options):
        command = option(command)
    return command


@click.group(name="fsmlab", help="Finite automata learning tool")
def entry():
    pass


@entry.command(name="regex", help="Compile a regular expression into an ε-NFA")
@click.argument("pattern", type=click.STRING)
@common_options
def regex_command(
    pattern: str,
    words: tuple[str, ...],
    input_file: Optional[IO],
    out: IO,
    target: Optional[str],
    graph: Optional[IO],
    debug: bool,
):
    configure_logging(debug)
    try:
        automaton = regex_to_automaton(pattern)
        run(automaton, words, input_file, out, target, graph, debug)
    except FsmError as e:
        raise click.ClickException(str(e)) from e


@entry.command(name="load", help="Load an automaton from a JSON file")
@click.argument("automaton_file", type=click.File())
@click.option(
    "--variant",
    type=click.Choice(TARGETS, case_sensitive=False),
    default=None,
    help="Variant of the automaton, defaults to the 'variant' field of the file",
)
@common_options
def load_command(
    automaton_file: IO,
    variant: Optional[str],
    words: tuple[str, ...],
    input_file: Optional[IO],
    out: IO,
    target: Optional[str],
    graph: Optional[IO],
    debug: bool,
):
    configure_logging(debug)
    try:
        automaton = loads_automaton(automaton_file.read(), variant)
        run(automaton, words, input_file, out, target, graph, debug)
    except FsmError as e:
        raise click.ClickException(str(e)) from e


if __name__ == "__main__":
    entry()
