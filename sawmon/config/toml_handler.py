"""
TOML File I/O.

Reading goes through tomllib; writing goes through tomlkit so that comments
and layout an operator added by hand survive a rewrite.
"""

import tomllib
from pathlib import Path
from typing import Any

import tomlkit

from sawmon.config.schema import ConfigField


class TOMLError(Exception):
    """Raised when a TOML file cannot be read, parsed or written."""

    pass


def read_toml(file_path: Path) -> dict[str, Any]:
    """
    Plain dict view of a TOML file.

    Raises:
        TOMLError: If the file is missing, unreadable or not valid TOML
    """
    try:
        return tomllib.loads(file_path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise TOMLError(f"TOML file not found: {file_path}") from e
    except (OSError, tomllib.TOMLDecodeError, UnicodeDecodeError) as e:
        raise TOMLError(f"Failed to parse {file_path}: {e}") from e


def load_document(file_path: Path) -> tomlkit.TOMLDocument:
    """
    Load a file as an editable tomlkit document.

    A missing file yields an empty document.
    """
    if not file_path.exists():
        return tomlkit.document()
    try:
        return tomlkit.parse(file_path.read_text(encoding="utf-8"))
    except Exception as e:
        raise TOMLError(f"Failed to parse {file_path}: {e}") from e


def write_toml(file_path: Path, data: dict[str, Any]) -> None:
    """
    Replace a TOML file with data (a plain dict or a tomlkit document).

    Missing parent directories are created.
    """
    try:
        text = tomlkit.dumps(data)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(text, encoding="utf-8")
    except Exception as e:
        raise TOMLError(f"Failed to write {file_path}: {e}") from e


def _constraint_note(setting: ConfigField) -> str | None:
    parts = [
        f"{label}: {value}"
        for label, value in (("min", setting.min), ("max", setting.max), ("choices", setting.choices))
        if value is not None
    ]
    return f"Constraints: {', '.join(parts)}" if parts else None


def schema_table(schema: dict[str, ConfigField]) -> Any:
    """One section at its defaults, each key preceded by its description."""
    table = tomlkit.table()

    for key, setting in schema.items():
        note = _constraint_note(setting)
        for comment in (setting.description, note):
            if comment:
                table.add(tomlkit.comment(comment))
        table.add(key, setting.default)

    return table


def generate_toml(schemas: dict[str, dict[str, ConfigField]]) -> str:
    """
    Render a complete, commented config file for the given sections.

    Args:
        schemas: section name -> schema

    Returns:
        TOML text
    """
    doc = tomlkit.document()
    doc.add(tomlkit.comment("sawmon configuration"))
    doc.add(tomlkit.nl())

    for section, schema in schemas.items():
        doc.add(section, schema_table(schema))

    return tomlkit.dumps(doc)
