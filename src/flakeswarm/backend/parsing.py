"""Parsers for the textual output of the gomote CLI.

Kept apart from the client so a change in the CLI's output format only
touches this module.
"""
from typing import List, Tuple
from flakeswarm.core.exceptions import MalformedOutputError

VALID_TYPES_HEADER = "Valid types:"


def parse_instance_list(text: str) -> List[Tuple[str, str]]:
    """
    Parse `gomote list` output.

    Each non-empty line is tab separated; the first two columns are the
    instance name and its type.

    Args:
        text: Raw command output

    Returns:
        List[Tuple[str, str]]: (name, instance_type) pairs in listed order

    Raises:
        MalformedOutputError: If a line has fewer than two columns
    """
    instances = []
    for line in text.splitlines():
        if not line.strip():
            continue
        details = line.split("\t")
        if len(details) < 2:
            raise MalformedOutputError(f"unexpected `gomote list` format: {line!r}")
        instances.append((details[0].strip(), details[1].strip()))
    return instances


def parse_instance_types(text: str) -> List[str]:
    """
    Parse the usage text `gomote create` prints when run without arguments.

    Types are listed one per line after a "Valid types:" header, in the form
    "  * <type> [optional notes]".

    Args:
        text: Raw command output

    Returns:
        List[str]: Instance types in listed order

    Raises:
        MalformedOutputError: If a line after the header is not a bullet
    """
    types = []
    started = False
    for line in text.splitlines():
        if not started:
            if line.startswith(VALID_TYPES_HEADER):
                started = True
            continue
        if not line.strip():
            continue
        star = line.find("*")
        if star < 0 or star == len(line) - 1:
            raise MalformedOutputError(f"unexpected `gomote create` format: {line!r}")
        bracket = line.find("[")
        if bracket < 0:
            bracket = len(line)
        types.append(line[star + 1:bracket].strip())
    return types
