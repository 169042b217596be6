"""Configuration module for the distillation engine."""

from .settings import Settings, get_settings
from .profiles import (
    build_default_profile,
    build_profile,
    known_targets,
    load_profiles,
    match_target,
    normalize_target_id,
    resolve_profile,
    target_full_name,
)

__all__ = [
    "Settings",
    "get_settings",
    "build_default_profile",
    "build_profile",
    "known_targets",
    "load_profiles",
    "match_target",
    "normalize_target_id",
    "resolve_profile",
    "target_full_name",
]
