"""Planner client and prompt assembly."""
