"""Parsing of source files into text."""
