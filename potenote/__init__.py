"""Potenote package providing the progression, gacha, capture and sync engine."""

from . import (  # noqa: F401
    capture,
    catalog,
    config,
    errors,
    gacha,
    history,
    inventory,
    journey,
    ledger,
    models,
    remote,
    schemas,
    state,
    store,
    sync,
    upstream,
    utils,
    words,
)

__all__ = [
    "capture",
    "catalog",
    "config",
    "errors",
    "gacha",
    "history",
    "inventory",
    "journey",
    "ledger",
    "models",
    "remote",
    "schemas",
    "state",
    "store",
    "sync",
    "upstream",
    "utils",
    "words",
]
