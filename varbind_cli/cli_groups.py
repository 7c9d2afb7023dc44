"""Command hierarchy groups for organized CLI experience.

Provides logical grouping of commands under:
  varbind config: search configuration management
"""

from __future__ import annotations

import typer

# ── Configuration group ──────────────────────────────────────
config_grp = typer.Typer(
    help="⚙️  Configuration: progress cadence, pruning and defaults.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
