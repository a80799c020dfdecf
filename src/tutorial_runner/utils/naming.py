"""Resource name and credential generation.

Every tutorial run gets one random suffix that is appended to all resource
names it creates, so repeated or concurrent runs in the same account never
collide and leftover resources are easy to attribute to a run.
"""

import secrets
import string
from typing import Final

from tutorial_runner.constants import (
    DEFAULT_PASSWORD_LENGTH,
    DEFAULT_RESOURCE_PREFIX,
    DEFAULT_SUFFIX_LENGTH,
    PASSWORD_SYMBOLS,
)

SUFFIX_ALPHABET: Final[str] = string.ascii_lowercase + string.digits


def generate_suffix(length: int = DEFAULT_SUFFIX_LENGTH, alphabet: str = SUFFIX_ALPHABET) -> str:
    """Generate a random suffix for resource names.

    Args:
        length: Number of characters. Defaults to 8.
        alphabet: Characters to draw from. Defaults to lowercase letters and digits.

    Returns:
        Random string of the requested length.

    Raises:
        ValueError: If length is not positive or alphabet is empty.

    Example:
        >>> len(generate_suffix(6))
        6
    """
    if length < 1:
        raise ValueError("Suffix length must be positive")
    if not alphabet:
        raise ValueError("Suffix alphabet cannot be empty")
    return "".join(secrets.choice(alphabet) for _ in range(length))


def generate_hex_suffix(nbytes: int = 4) -> str:
    """Generate a random hexadecimal suffix (two characters per byte).

    Args:
        nbytes: Number of random bytes. Defaults to 4.

    Returns:
        Lowercase hexadecimal string.
    """
    return secrets.token_hex(nbytes)


def generate_password(
    length: int = DEFAULT_PASSWORD_LENGTH, symbols: str = PASSWORD_SYMBOLS
) -> str:
    """Generate a password containing every character class.

    The result always contains at least one lowercase letter, one uppercase
    letter, one digit and one symbol, which satisfies the password policies
    of Amazon MQ, Amazon RDS and Directory Service.

    Args:
        length: Password length. Defaults to 20.
        symbols: Symbols allowed in the password.

    Returns:
        Random password.

    Raises:
        ValueError: If length is below 4 or no symbols are allowed.
    """
    if length < 4:
        raise ValueError("Password length must be at least 4")
    if not symbols:
        raise ValueError("Password needs at least one allowed symbol")

    classes = [string.ascii_lowercase, string.ascii_uppercase, string.digits, symbols]
    alphabet = "".join(classes)
    chars = [secrets.choice(char_class) for char_class in classes]
    chars.extend(secrets.choice(alphabet) for _ in range(length - len(classes)))

    # Shuffle so the guaranteed characters are not always first
    for index in range(len(chars) - 1, 0, -1):
        swap = secrets.randbelow(index + 1)
        chars[index], chars[swap] = chars[swap], chars[index]

    return "".join(chars)


class ResourceNamer:
    """Builds resource names that share one random suffix.

    Attributes:
        prefix: Prefix for every name.
        suffix: Random suffix, stable for the lifetime of the namer.

    Example:
        >>> namer = ResourceNamer(prefix="neptune", suffix="a1b2c3d4")
        >>> namer.name("cluster")
        'neptune-cluster-a1b2c3d4'
        >>> namer.name("db", separator="_")
        'neptune_db_a1b2c3d4'
    """

    def __init__(
        self,
        prefix: str = DEFAULT_RESOURCE_PREFIX,
        suffix: str | None = None,
        suffix_length: int = DEFAULT_SUFFIX_LENGTH,
    ) -> None:
        """Initialize the namer.

        Args:
            prefix: Prefix for every name. Defaults to "tut".
            suffix: Fixed suffix. If None, a random one is generated.
            suffix_length: Length of the generated suffix. Defaults to 8.
        """
        self.prefix = prefix
        self.suffix = suffix or generate_suffix(suffix_length)

    def name(
        self,
        kind: str,
        separator: str = "-",
        max_length: int | None = None,
        lowercase: bool = True,
    ) -> str:
        """Build a name for a resource kind.

        When the name is longer than ``max_length`` the prefix and kind are
        shortened; the suffix is always kept whole.

        Args:
            kind: Resource kind (e.g. "vpc", "broker").
            separator: Separator between parts. Defaults to "-".
            max_length: Maximum length accepted by the service. Defaults to None.
            lowercase: Lowercase the result. Defaults to True.

        Returns:
            The resource name.

        Raises:
            ValueError: If max_length cannot fit the suffix.
        """
        parts = [part for part in (self.prefix, kind) if part]
        head = separator.join(parts)
        tail = f"{separator}{self.suffix}" if head else self.suffix

        if max_length is not None:
            if len(self.suffix) > max_length:
                raise ValueError(
                    f"max_length {max_length} is too short for suffix '{self.suffix}'"
                )
            room = max_length - len(tail)
            if room <= 0:
                head, tail = "", self.suffix
            else:
                head = head[:room].rstrip(separator)
                if not head:
                    tail = self.suffix

        result = f"{head}{tail}"
        return result.lower() if lowercase else result
