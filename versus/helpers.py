"""Miscellaneous helper functions used throughout Versus."""

import os
import random
import re
import string
import time
from pathlib import Path


class VersusHelpers():
    """Versus helpers.

    Static helpers for locating the data directory and generating
    identifiers for stored records.
    """

    @staticmethod
    def dataPath() -> str:
        """Returns the file system location of Versus data and configuration files.

        Honours the VERSUS_DATA environment variable, otherwise ~/.versus.

        Returns:
            str: Versus data file path
        """
        path = os.environ.get('VERSUS_DATA')
        if not path:
            path = str(Path.home() / ".versus")
        if not os.path.isdir(path):
            os.makedirs(path, exist_ok=True)
        return path

    @staticmethod
    def logPath() -> str:
        """Returns the file system location of Versus log files.

        Returns:
            str: Versus log file path
        """
        path = os.path.join(VersusHelpers.dataPath(), "logs")
        if not os.path.isdir(path):
            os.makedirs(path, exist_ok=True)
        return path

    @staticmethod
    def genId() -> str:
        """Generate a short, roughly time-ordered record identifier.

        Returns:
            str: identifier made of base-36 millisecond time and random suffix
        """
        alphabet = string.digits + string.ascii_lowercase
        millis = int(time.time() * 1000)
        stamp = ""
        while millis:
            millis, rem = divmod(millis, 36)
            stamp = alphabet[rem] + stamp
        suffix = "".join(random.SystemRandom().choice(alphabet) for _ in range(10))
        return stamp + suffix

    @staticmethod
    def genSlug(name: str) -> str:
        """Turn a display name into a URL slug.

        Args:
            name (str): display name

        Returns:
            str: lowercase slug with runs of non-alphanumerics collapsed to '-'
        """
        slug = re.sub(r'[^a-z0-9]+', '-', name.lower())
        return slug.strip('-')

    @staticmethod
    def uniqueSlug(slug: str, existing: list) -> str:
        """Make a slug unique against a list of taken slugs.

        Args:
            slug (str): candidate slug
            existing (list): slugs already in use

        Returns:
            str: slug, or slug with the first free numeric suffix
        """
        taken = set(existing)
        candidate = slug
        counter = 1
        while candidate in taken:
            candidate = f"{slug}-{counter}"
            counter += 1
        return candidate
