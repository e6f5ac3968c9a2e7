"""
String helpers used to derive resource routes.
"""

from __future__ import annotations

import re

_IRREGULAR_PLURALS = {
    "person": "people",
    "child": "children",
    "man": "men",
    "woman": "women",
    "mouse": "mice",
    "datum": "data",
    "medium": "media",
    "criterion": "criteria",
    "index": "indices",
    "matrix": "matrices",
    "status": "statuses",
    "address": "addresses",
}

_WORD_RE = re.compile(r"[A-Z]+(?=[A-Z][a-z]|[0-9]|\b|_)|[A-Z]?[a-z]+|[A-Z]+|[0-9]+")


def kebab_case(name: str) -> str:
    """
    Convert an identifier to kebab-case.

    Examples:
        >>> kebab_case("blogPost")
        'blog-post'
        >>> kebab_case("HTTPRequest log")
        'http-request-log'
    """
    return "-".join(word.lower() for word in _WORD_RE.findall(name))


def pluralize(word: str) -> str:
    """
    Pluralize the last segment of a (possibly kebab-cased) English word.

    Examples:
        >>> pluralize("blog-post")
        'blog-posts'
        >>> pluralize("person")
        'people'
        >>> pluralize("policy")
        'policies'
    """
    if not word:
        return word

    head, sep, last = word.rpartition("-")
    lower = last.lower()

    if lower in _IRREGULAR_PLURALS:
        plural = _IRREGULAR_PLURALS[lower]
    elif lower.endswith(("s", "x", "z", "ch", "sh")):
        plural = last + "es"
    elif lower.endswith("y") and len(lower) > 1 and lower[-2] not in "aeiou":
        plural = last[:-1] + "ies"
    elif lower.endswith(("elf", "alf", "olf", "eaf", "oaf", "arf")):
        plural = last[:-1] + "ves"
    elif lower.endswith("fe"):
        plural = last[:-2] + "ves"
    elif lower.endswith(("hero", "potato", "tomato", "echo", "veto")):
        plural = last + "es"
    else:
        plural = last + "s"

    return f"{head}{sep}{plural}"


def default_route(resource_name: str) -> str:
    """
    Route segment used when a resource does not declare one.

    Examples:
        >>> default_route("blogPost")
        'blog-posts'
        >>> default_route("person")
        'people'
    """
    return pluralize(kebab_case(resource_name))
