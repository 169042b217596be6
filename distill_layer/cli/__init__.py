"""CLI for the distillation layer."""
