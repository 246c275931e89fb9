"""Interactive input helpers for the FleetDesk command line.

Values are validated here, at the boundary, so the engines only ever see
well-formed parameters. Invalid answers are reported and asked again.
"""

from typing import Callable, Optional, TypeVar

from .error_handling.exceptions import InvalidInputError, NotFoundError

T = TypeVar('T')


class InputAborted(Exception):
    """The operator closed the input stream or gave up."""


def prompt_until_valid(message: str, validator: Callable[[str], T],
                       input_func: Callable[[str], str] = input,
                       output: Callable[[str], None] = print,
                       max_attempts: Optional[int] = None) -> T:
    """Ask for a value until ``validator`` accepts it.

    Args:
        message: Prompt text.
        validator: Returns the typed value or raises InvalidInputError/NotFoundError.
        input_func: Source of answers.
        output: Sink for error messages.
        max_attempts: Give up after this many invalid answers.

    Raises:
        InputAborted: On end of input or when ``max_attempts`` is exhausted.
    """
    attempts = 0
    while True:
        try:
            answer = input_func(message)
        except EOFError as e:
            raise InputAborted("No more input") from e
        try:
            return validator(answer)
        except (InvalidInputError, NotFoundError) as e:
            output(f"  {e}")
            attempts += 1
            if max_attempts is not None and attempts >= max_attempts:
                raise InputAborted(f"Gave up after {attempts} invalid answers") from e


def parse_yes_no(answer: str) -> bool:
    """Parse a y/n answer."""
    value = answer.strip().lower()
    if value in ('y', 'yes'):
        return True
    if value in ('n', 'no'):
        return False
    raise InvalidInputError("Please answer y or n")


def confirm(message: str, input_func: Callable[[str], str] = input) -> bool:
    """Ask a yes/no question; anything but an explicit yes means no."""
    try:
        return input_func(f"{message} [y/N] ").strip().lower() in ('y', 'yes')
    except EOFError:
        return False
