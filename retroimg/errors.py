"""Exception hierarchy for the colour conversion core."""

from __future__ import annotations


class RetroImgError(Exception):
    """Base class for every error raised by :mod:`retroimg`."""


class InvalidArgumentError(RetroImgError, ValueError):
    """A precondition on the arguments of an operation was violated.

    Raised for mismatched buffer lengths, pixel counts that do not match the
    declared image size, empty palettes and non-positive colour counts.
    """
