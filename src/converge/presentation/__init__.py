"""Presentation layer - human-friendly formatting."""

from .human_formatter import format_plan, format_apply_result, format_state_list, format_record, format_policy_result

__all__ = ["format_plan", "format_apply_result", "format_state_list", "format_record", "format_policy_result"]
