"""Speck parsing: raw text to ``Document``."""

from specks.parsing.parser import ParseError, parse, parse_file

__all__ = ["ParseError", "parse", "parse_file"]
