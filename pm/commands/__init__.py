"""pm subcommands."""
