"""Saved plan files."""

from .plan_file import save_plan, load_plan, is_plan_file, ensure_plan_current, document_hash

__all__ = ["save_plan", "load_plan", "is_plan_file", "ensure_plan_current", "document_hash"]
