"""
Stable hashing utilities.

Token bucketing must be identical across processes and platforms, so the
built-in hash() (salted per process) cannot be used.
"""


def token_hash(token: str) -> int:
    """
    Rolling 31-multiplier hash over UTF-16 code units.

    The accumulator wraps to a signed 32-bit integer after every step and
    the absolute value of the final state is returned.

    Examples:
        >>> token_hash("ab")
        3105
        >>> token_hash("")
        0
    """
    h = 0
    data = token.encode("utf-16-le")
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        h = (h * 31 + unit) & 0xFFFFFFFF
        if h >= 0x80000000:
            h -= 0x100000000
    return abs(h)


def bucket(token: str, dim: int) -> int:
    """Map a token onto one of dim vector slots."""
    return token_hash(token) % dim
