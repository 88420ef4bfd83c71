"""Extension-based classification of file names into categories."""
from __future__ import annotations

import re
from typing import Mapping

from .config import DEFAULT_CATEGORY_ALIASES, FALLBACK_CATEGORY

_SAFE_CATEGORY = re.compile(r"^[a-z0-9_+-]+$")


def extension_of(file_name: str) -> str:
    """Return the lowercased text after the last dot of *file_name*.

    Dotfiles without a further extension (``.bashrc``, ``..cache``) and names
    ending in a dot have no extension.
    """

    stem, dot, extension = file_name.rpartition(".")
    if not dot or not stem.strip("."):
        return ""
    return extension.lower()


class ExtensionClassifier:
    """Map file names to category names.

    The category is the extension itself unless ``aliases`` maps it to a
    friendlier name (``py`` -> ``python``). Anything that is not a plain
    extension token lands in ``fallback``.
    """

    def __init__(
        self,
        aliases: Mapping[str, str] | None = None,
        *,
        fallback: str = FALLBACK_CATEGORY,
    ) -> None:
        source = DEFAULT_CATEGORY_ALIASES if aliases is None else aliases
        self.aliases = {key.lower().lstrip("."): value.lower() for key, value in source.items()}
        self.fallback = fallback

    def classify(self, file_name: str) -> str:
        extension = extension_of(file_name)
        if not extension or not _SAFE_CATEGORY.match(extension):
            return self.fallback
        category = self.aliases.get(extension, extension)
        if not _SAFE_CATEGORY.match(category):
            return self.fallback
        return category

    def __call__(self, file_name: str) -> str:
        return self.classify(file_name)


_DEFAULT = ExtensionClassifier()


def classify(file_name: str) -> str:
    """Classify *file_name* with the default alias table."""

    return _DEFAULT.classify(file_name)


__all__ = ["ExtensionClassifier", "classify", "extension_of"]
