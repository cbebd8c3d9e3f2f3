# -*- coding: utf-8 -*-
########################
# base36.py
########################
# Purpose:
# - Two-character base-36 index codec used by table commands, LNOBJ and track data.
#
# Design notes:
# - Uppercase only. Lowercase letters are not base-36 digits here.
# - decode_pair is strict: callers validate with is_base36 (or use try_decode_pair) and report bad pairs.
#
########################
# Interfaces:
# Public constants:
# - DIGITS: str
# - INDEX_MAX: int  # 36 * 36
#
# Public functions:
# - is_base36(ch: str) -> bool
# - decode_pair(c1: str, c2: str) -> int
# - try_decode_pair(c1: str, c2: str) -> Optional[int]
# - encode_index(index: int) -> str
#
########################

from __future__ import annotations

from typing import Optional


DIGITS = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
INDEX_MAX = 36 * 36


def is_base36(ch: str) -> bool:
    if len(ch) != 1:
        return False
    return ("0" <= ch <= "9") or ("A" <= ch <= "Z")


def _digit_value(ch: str) -> int:
    if ch <= "9":
        return ord(ch) - ord("0")
    return ord(ch) - ord("A") + 10


def decode_pair(c1: str, c2: str) -> int:
    if not (is_base36(c1) and is_base36(c2)):
        raise ValueError(f"Not a base-36 index: {c1!r}{c2!r}")
    return _digit_value(c1) * 36 + _digit_value(c2)


def try_decode_pair(c1: str, c2: str) -> Optional[int]:
    if not (is_base36(c1) and is_base36(c2)):
        return None
    return _digit_value(c1) * 36 + _digit_value(c2)


def encode_index(index: int) -> str:
    index_value = int(index)
    if index_value < 0 or index_value >= INDEX_MAX:
        raise ValueError(f"Index out of base-36 range: {index_value}")
    return DIGITS[index_value // 36] + DIGITS[index_value % 36]


def _run_unit_tests() -> None:
    assert decode_pair("0", "0") == 0
    assert decode_pair("0", "1") == 1
    assert decode_pair("1", "0") == 36
    assert decode_pair("Z", "Z") == INDEX_MAX - 1
    assert try_decode_pair("z", "1") is None
    assert encode_index(decode_pair("A", "7")) == "A7"
    try:
        decode_pair("!", "!")
    except ValueError:
        pass
    else:
        raise AssertionError("Expected ValueError for non base-36 pair")


if __name__ == "__main__":
    _run_unit_tests()
    print("base36.py: ok")
