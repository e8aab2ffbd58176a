from .exceptions import InvalidArgument

# Base56: digits and letters minus the look-alikes 0 O o 1 l I
ALPHABET = "23456789abcdefghijkmnpqrstuvwxyzABCDEFGHJKLMNPQRSTUVWXYZ"

# Largest id a BIGINT primary key can hold
MAX_LINK_ID = 2 ** 63 - 1

class ShortCodeGenerator:
    """Maps store-assigned integer ids to short codes and back.

    Codes are the base-56 digits of the id, left-padded with the zero symbol
    to ``min_length``. The mapping is injective, so no collision handling is
    needed as long as ids are unique.
    """

    def __init__(self, min_length: int = 4, alphabet: str = ALPHABET):
        if len(set(alphabet)) != len(alphabet) or len(alphabet) < 2:
            raise InvalidArgument("Alphabet must have at least two distinct characters")
        if min_length < 1:
            raise InvalidArgument("min_length must be positive")
        self.alphabet = alphabet
        self.base = len(alphabet)
        self.min_length = min_length
        self._index = {char: i for i, char in enumerate(alphabet)}

    def encode(self, link_id: int) -> str:
        if isinstance(link_id, bool) or not isinstance(link_id, int):
            raise InvalidArgument(f"Link id must be an integer, got {link_id!r}")
        if link_id <= 0:
            raise InvalidArgument(f"Link id must be positive, got {link_id}")

        digits = []
        num = link_id
        while num > 0:
            num, remainder = divmod(num, self.base)
            digits.append(self.alphabet[remainder])
        code = "".join(reversed(digits))
        return code.rjust(self.min_length, self.alphabet[0])

    def decode(self, code: str, canonical: bool = True) -> int:
        """Return the id encoded in ``code``.

        With ``canonical`` the code must be exactly what ``encode`` produces
        under the current ``min_length``. Without it any amount of padding is
        accepted, which lets callers resolve codes issued under an older
        ``min_length`` and match them against the stored code themselves.
        """
        if not isinstance(code, str) or not code:
            raise InvalidArgument("Short code must be a non-empty string")

        value = 0
        for char in code:
            digit = self._index.get(char)
            if digit is None:
                raise InvalidArgument(f"Invalid character {char!r} in short code")
            value = value * self.base + digit

        if value <= 0 or value > MAX_LINK_ID:
            raise InvalidArgument(f"Short code out of range: {code!r}")
        if canonical and self.encode(value) != code:
            raise InvalidArgument(f"Not a canonical short code: {code!r}")
        return value
