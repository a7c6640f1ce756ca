"""
Interactive prompts.

A prompt the user backs out of (empty answer, ``q``, end of input) returns
the ``CANCELLED`` sentinel instead of raising, so callers can tell "user
declined" apart from "operation failed".
"""

from typing import Callable, List, Union

from portenv.config.manifest import Manifest


class Cancelled:
    """Result of a prompt the user backed out of."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "CANCELLED"


CANCELLED = Cancelled()

InputFunc = Callable[[str], str]


def _ask(question: str, input_func: InputFunc) -> Union[str, Cancelled]:
    try:
        answer = input_func(question)
    except EOFError:
        return CANCELLED
    return answer.strip()


def confirm(question: str, input_func: InputFunc = input) -> Union[bool, Cancelled]:
    """
    Ask a yes/no question.

    Returns:
        True for yes, False for no, CANCELLED on empty input or end of input
    """
    while True:
        answer = _ask(f"{question} [y/n] ", input_func)
        if isinstance(answer, Cancelled) or answer == "" or answer.lower() == "q":
            return CANCELLED
        if answer.lower() in ("y", "yes"):
            return True
        if answer.lower() in ("n", "no"):
            return False
        print("Please answer y or n.")


def select_tools(manifest: Manifest, input_func: InputFunc = input) -> Union[List[str], Cancelled]:
    """
    Let the user pick tools by number.

    Accepts comma or space separated numbers, or ``a`` for all.

    Returns:
        Selected tool names, or CANCELLED
    """
    tools = list(manifest)
    for index, tool in enumerate(tools, start=1):
        print(f"  {index}) {tool.name} {tool.version}")
    print("  a) all")

    while True:
        answer = _ask("Select tools (q to cancel): ", input_func)
        if isinstance(answer, Cancelled) or answer == "" or answer.lower() == "q":
            return CANCELLED
        if answer.lower() == "a":
            return [tool.name for tool in tools]

        picks = answer.replace(",", " ").split()
        if all(pick.isdigit() and 1 <= int(pick) <= len(tools) for pick in picks):
            return [tools[int(pick) - 1].name for pick in picks]
        print(f"Enter numbers between 1 and {len(tools)}, or 'a'.")
