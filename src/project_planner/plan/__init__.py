"""Ordered project plans.

This package provides the plan model, the file-backed :class:`PlanStore`
that owns every ``sequence_order`` value, and the :class:`PlanService` that
validates requests before they reach the store.
"""
