"""Kernel printf: a small formatter with width, padding and left adjustment."""

import operator
import sys

LP_MAX_BUF = 1000
_FATAL_MESSAGE = "fatal error in lp_Print!"
_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"
_NUMERIC_BASES = {
    "b": 2,
    "d": 10,
    "D": 10,
    "o": 8,
    "O": 8,
    "u": 10,
    "U": 10,
    "x": 16,
    "X": 16,
}


class KernelPanic(Exception):
    """The kernel hit an unrecoverable condition."""


def _uint32(value):
    return operator.index(value) & 0xFFFFFFFF


def _int32(value):
    value = _uint32(value)
    return value - (1 << 32) if value & 0x80000000 else value


def print_num(value, base, negative=False, width=0, left_adjust=False, pad=" ", upper=False):
    """Render an unsigned 32-bit number in ``base`` with sign, width and padding."""
    if not 2 <= base <= len(_DIGITS):
        raise ValueError(f"unsupported base {base}")
    u = _uint32(value)
    digits = []
    while True:
        u, d = divmod(u, base)
        digits.append(_DIGITS[d])
        if u == 0:
            break
    text = "".join(reversed(digits))
    if upper:
        text = text.upper()
    if left_adjust:
        return (("-" if negative else "") + text).ljust(width)
    if negative and pad == "0":
        return "-" + text.rjust(width - 1, "0")
    return (("-" if negative else "") + text).rjust(width, pad)


def print_char(c, width=0, left_adjust=False):
    """Render a single character padded with spaces to ``width``."""
    return c.ljust(width) if left_adjust else c.rjust(width)


def print_string(s, width=0, left_adjust=False):
    """Render a string padded with spaces to ``width``; never truncates."""
    return s.ljust(width) if left_adjust else s.rjust(width)


def _checked(piece):
    if len(piece) > LP_MAX_BUF:
        raise KernelPanic(_FATAL_MESSAGE)
    return piece


def _next_arg(args):
    try:
        return next(args)
    except StopIteration:
        raise TypeError("not enough arguments for format string") from None


def _read_number(fmt, i):
    value = 0
    while i < len(fmt) and "0" <= fmt[i] <= "9":
        value = value * 10 + ord(fmt[i]) - ord("0")
        i += 1
    return value, i


def _as_char(arg):
    if isinstance(arg, str):
        if len(arg) != 1:
            raise TypeError("%c requires a single character")
        return arg
    return chr(operator.index(arg) & 0xFF)


def _convert(conv, args, width, left_adjust, pad):
    base = _NUMERIC_BASES.get(conv)
    if base is not None:
        value = _next_arg(args)
        if conv in "dD":
            number = _int32(value)
            return print_num(abs(number), 10, number < 0, width, left_adjust, pad)
        return print_num(value, base, False, width, left_adjust, pad, conv == "X")
    if conv == "c":
        return print_char(_as_char(_next_arg(args)), width, left_adjust)
    if conv == "s":
        return print_string(str(_next_arg(args)), width, left_adjust)
    return conv


def _pieces(fmt, args):
    """Yield the output chunks of a format run, in order."""
    fmt = fmt.split("\0", 1)[0]
    args = iter(args)
    pos = 0
    while True:
        end = fmt.find("%", pos)
        if end < 0:
            yield _checked(fmt[pos:])
            return
        yield _checked(fmt[pos:end])
        i = end + 1
        left_adjust = False
        pad = " "
        if i < len(fmt) and fmt[i] == "-":
            left_adjust = True
            i += 1
        if i < len(fmt) and fmt[i] == "0":
            pad = "0"
            i += 1
        width, i = _read_number(fmt, i)
        if i < len(fmt) and fmt[i] == ".":
            _, i = _read_number(fmt, i + 1)  # precision is parsed but ignored
        if i < len(fmt) and fmt[i] == "l":
            i += 1
        if i >= len(fmt):
            return
        yield _checked(_convert(fmt[i], args, width, left_adjust, pad))
        pos = i + 1


def format_string(fmt, *args):
    """Format ``args`` according to ``fmt`` and return the text."""
    return "".join(_pieces(fmt, args))


def printf(fmt, *args, file=None):
    """Write formatted text to the console stream, doubling each newline."""
    out = sys.stdout if file is None else file
    for piece in _pieces(fmt, args):
        if piece == "\0":
            continue
        out.write(piece.replace("\n", "\n\n"))


def panic(fmt, *args):
    """Stop with a formatted message."""
    raise KernelPanic(format_string(fmt, *args))