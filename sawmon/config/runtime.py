"""
Section proxies.

ConfigProxy gives attribute access to one resolved config section. Writes are
validated and written straight back to the file, leaving other sections and
hand-written comments in place.
"""

import threading
from pathlib import Path
from typing import Any

from sawmon.config.schema import ConfigField, resolve_section
from sawmon.config.toml_handler import load_document, read_toml, write_toml


class ConfigRuntimeError(Exception):
    """Raised when a section cannot be loaded or flushed."""

    pass


# Attributes stored on the proxy itself rather than in the section
_INTERNAL = ("_section", "_schema", "_config_file", "_lock", "_values")


class ConfigProxy:
    """
    Live view of one config section.

    Values are resolved once, when the proxy is built. Example:

        cfg = ConfigProxy("sawmon", schema, Path("config/sawmon.toml"))
        cfg.operation_timeout         # 30.0
        cfg.operation_timeout = 10    # stored as 10.0 and flushed
    """

    def __init__(self, section: str, schema: dict[str, ConfigField], config_file: Path):
        self.__dict__.update(
            _section=section,
            _schema=schema,
            _config_file=config_file,
            _lock=threading.Lock(),
            _values=self._resolve(section, schema, config_file),
        )

    @staticmethod
    def _resolve(
        section: str, schema: dict[str, ConfigField], config_file: Path
    ) -> dict[str, Any]:
        try:
            raw = read_toml(config_file).get(section, {}) if config_file.exists() else {}
            return resolve_section(raw, schema)
        except Exception as e:
            raise ConfigRuntimeError(
                f"Failed to load [{section}] from {config_file}: {e}"
            ) from e

    def _setting(self, name: str) -> ConfigField:
        try:
            return self._schema[name]
        except KeyError:
            raise AttributeError(
                f"Configuration field '{name}' not found in schema for {self._section}"
            ) from None

    def __getattr__(self, name: str) -> Any:
        # Only called for names not found on the instance, i.e. settings
        self._setting(name)
        return self._values[name]

    def __setattr__(self, name: str, value: Any) -> None:
        if name in _INTERNAL:
            raise AttributeError(f"{name} is read-only")

        setting = self._setting(name)
        value = setting.coerce(value)
        setting.validate(value)

        with self._lock:
            self._values[name] = value
            self._flush()

    def as_dict(self) -> dict[str, Any]:
        """Snapshot of the resolved section."""
        return dict(self._values)

    def _flush(self) -> None:
        try:
            doc = load_document(self._config_file)
            if self._section not in doc:
                doc[self._section] = {}
            table = doc[self._section]
            for key, value in self._values.items():
                table[key] = value
            write_toml(self._config_file, doc)
        except Exception as e:
            raise ConfigRuntimeError(f"Failed to flush [{self._section}] to file: {e}") from e

    def __repr__(self) -> str:
        return f"ConfigProxy({self._section}, {self._values})"
