"""
Composition root.

Builds a PluginManager from the [sawmon] section of the config file. The
process owns the returned manager; nothing here is a module-level singleton.
"""

from pathlib import Path

from sawmon import config
from sawmon.plugin.installer import PipInstaller
from sawmon.plugin.manager import PluginManager
from sawmon.plugin.ordering import STRATEGIES, TOPOLOGICAL
from sawmon.plugin.store import TomlRecordStore

SECTION = "sawmon"

ENGINE_SCHEMA = {
    "plugins_dir": config.field(
        str, ".", "Directory local plugin names (./plugins/...) are relative to"
    ),
    "records_file": config.field(
        str, "config/plugins.toml", "TOML file holding installed plugin records"
    ),
    "operation_timeout": config.field(
        float, 30.0, "Seconds a plugin operation may run before it is failed", min=0.0
    ),
    "install_timeout": config.field(
        float, 300.0, "Seconds a single pip install may take", min=0.0
    ),
    "ordering": config.field(
        str,
        TOPOLOGICAL,
        "Dependency ordering strategy",
        choices=list(STRATEGIES),
    ),
}


def engine_settings(config_file: Path | str | None = None) -> config.ConfigProxy:
    """Engine settings, optionally from another config file."""
    if config_file is not None:
        config.set_config_file(config_file)
    config.declare(SECTION, ENGINE_SCHEMA, replace=True)
    return config.get(SECTION)


def create_manager(config_file: Path | str | None = None) -> PluginManager:
    """
    Build a PluginManager wired to pip and the TOML record store.

    Relative paths in the settings are taken relative to the working directory.
    """
    settings = engine_settings(config_file)

    installer = PipInstaller(
        plugins_dir=Path(settings.plugins_dir),
        timeout=settings.install_timeout or None,
    )
    store = TomlRecordStore(Path(settings.records_file))

    return PluginManager(
        installer=installer,
        store=store,
        ordering=settings.ordering,
        operation_timeout=settings.operation_timeout or None,
    )
