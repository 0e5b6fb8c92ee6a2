# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/plugin_activator/dataverse/connection_string.py

from __future__ import annotations

from typing import Dict

from .errors import DataverseError

_NEEDS_QUOTES = set(";='\"")


def quote_value(value: str) -> str:
    """
    Quote a connection string value when it would not survive parsing bare.

    Values with ``;``, ``=``, quotes or leading/trailing whitespace are
    wrapped in double quotes (embedded double quotes doubled), or in single
    quotes when the value holds double quotes but no single quote.
    """
    if value == value.strip() and not _NEEDS_QUOTES.intersection(value):
        return value
    if '"' in value and "'" not in value:
        return f"'{value}'"
    return '"' + value.replace('"', '""') + '"'


def format_connection_string(**parts: str) -> str:
    return ";".join(f"{key}={quote_value(value)}" for key, value in parts.items())


def parse_connection_string(value: str) -> Dict[str, str]:
    """
    Split ``Key=Value;Key="quoted;value"`` into a dict with lower-cased keys.

    Quoted values keep their whitespace, and a doubled quote inside them
    stands for one quote character.
    """
    parts: Dict[str, str] = {}
    i, n = 0, len(value)

    while i < n:
        while i < n and (value[i].isspace() or value[i] == ";"):
            i += 1
        if i >= n:
            break

        eq = value.find("=", i)
        semi = value.find(";", i)
        if eq == -1 or (semi != -1 and semi < eq):
            segment = value[i:] if semi == -1 else value[i:semi]
            raise DataverseError(f"Malformed connection string segment: {segment.strip()!r}")

        key = value[i:eq].strip().lower()
        i = eq + 1
        while i < n and value[i] in " \t":
            i += 1

        if i < n and value[i] in "\"'":
            quote = value[i]
            i += 1
            buf = []
            while True:
                if i >= n:
                    raise DataverseError(f"Unterminated quoted value for {key!r}")
                ch = value[i]
                if ch == quote:
                    if i + 1 < n and value[i + 1] == quote:
                        buf.append(quote)
                        i += 2
                        continue
                    i += 1
                    break
                buf.append(ch)
                i += 1

            while i < n and value[i].isspace():
                i += 1
            if i < n and value[i] != ";":
                raise DataverseError(f"Unexpected text after quoted value for {key!r}")
            parts[key] = "".join(buf)
        else:
            semi = value.find(";", i)
            end = n if semi == -1 else semi
            parts[key] = value[i:end].strip()
            i = end

    return parts
