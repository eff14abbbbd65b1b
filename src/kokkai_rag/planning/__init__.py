"""Question decomposition into structured query plans."""
from __future__ import annotations

from .planner import PlanParseError, QueryPlanner, build_plan_prompt, parse_plan

__all__ = ["PlanParseError", "QueryPlanner", "build_plan_prompt", "parse_plan"]
