import re

from django.core.exceptions import ValidationError

FORBIDDEN_USERNAME_PATTERN = re.compile(r"""[<>"'%;()&\\]|\.\./""")
TRIM_CHARACTERS = " \t\n\r\0\x0b"

USERNAME_INVALID_MESSAGE = (
    "Please enter a valid username. No space at beginning or end, at least 2"
    " characters and must not have the following characters: < > \\ \" ' % ; ( ) &"
)


def is_username_compliant(username):
    """Return ``True`` when ``username`` is well formed.

    A username is compliant when it contains none of ``< > " ' % ; ( ) & \\``
    nor ``../``, is at least two characters long once every extended
    character counts as a single byte, and has no surrounding whitespace.
    Empty usernames are compliant.
    """
    if not username:
        return True
    username = str(username)
    if FORBIDDEN_USERNAME_PATTERN.search(username):
        return False
    # Extended characters collapse to one byte each, like a Latin-1 decode.
    if len(username.encode("latin-1", errors="replace")) < 2:
        return False
    return username.strip(TRIM_CHARACTERS) == username


def validate_username_compliant(value):
    if not is_username_compliant(value):
        raise ValidationError(USERNAME_INVALID_MESSAGE)
