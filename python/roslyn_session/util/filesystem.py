"""Filesystem utilities."""

from pathlib import Path
from typing import List, Optional, Tuple, Union

Suffix = Union[str, Tuple[str, ...]]


class Filesystem:
    """Filesystem utility functions."""

    @staticmethod
    def find_up(filename: str, start_path: str) -> Tuple[Optional[str], Optional[str]]:
        """
        Find a file by walking up the directory tree.

        Returns:
            Tuple of (file_path, directory_containing_file) or (None, None) if not found
        """
        current_path = Path(start_path).resolve()

        while True:
            target_file = current_path / filename
            if target_file.exists():
                return str(target_file), str(current_path)

            parent = current_path.parent
            if parent == current_path:
                break
            current_path = parent

        return None, None

    @staticmethod
    def find_up_matching(suffix: Suffix, start_path: str, stop_path: Optional[str] = None) -> Tuple[List[str], Optional[str]]:
        """
        Walk up from ``start_path`` until a directory holds files ending in ``suffix``.

        ``suffix`` may be a tuple; every suffix is checked in each directory.

        The walk does not go above ``stop_path`` when one is given.

        Returns:
            Tuple of (sorted matching files, directory holding them) or ([], None)
        """
        current_path = Path(start_path).resolve()
        stop = Path(stop_path).resolve() if stop_path else None

        while True:
            try:
                matches = sorted(
                    str(entry) for entry in current_path.iterdir()
                    if entry.is_file() and entry.name.endswith(suffix)
                )
            except OSError:
                matches = []
            if matches:
                return matches, str(current_path)

            parent = current_path.parent
            if parent == current_path or current_path == stop:
                break
            current_path = parent

        return [], None

    @staticmethod
    def find_files(suffix: Suffix, directory: str, max_depth: int = 10) -> List[str]:
        """
        Find files ending in ``suffix`` below a directory, breadth first.

        Hidden directories are skipped.

        Args:
            suffix: File name suffix to match, such as ``.sln``, or a tuple of them
            directory: Directory to search in
            max_depth: Maximum depth to search

        Returns:
            List of matching file paths
        """
        base_path = Path(directory)
        if not base_path.is_dir():
            return []

        matches = []
        queue = [(base_path, 0)]
        while queue:
            current, depth = queue.pop(0)
            try:
                entries = sorted(current.iterdir())
            except OSError:
                continue
            for entry in entries:
                if entry.name.startswith("."):
                    continue
                if entry.is_dir():
                    if depth + 1 < max_depth:
                        queue.append((entry, depth + 1))
                elif entry.name.endswith(suffix):
                    matches.append(str(entry))

        return matches
