"""File path resolution utilities for CLI."""

from pathlib import Path


def resolve_file_path(file_path: str) -> Path:
    """
    Resolve a user-supplied input file (desired state, saved plan, policy).

    Relative paths are resolved against the current directory.

    Raises:
        FileNotFoundError: If the path does not exist or is not a file
    """
    path = Path(file_path)
    if not path.is_absolute():
        path = Path.cwd() / path
    path = path.resolve()

    if not path.exists():
        raise FileNotFoundError(f"File not found: {file_path}. Please check the file path and try again.")

    if not path.is_file():
        raise FileNotFoundError(f"Path is not a file: {file_path}. Please provide a valid file path.")

    return path
