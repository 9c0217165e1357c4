"""Scenario catalogs."""

from .navigator import NavigatorExpectations, build_scenarios

__all__ = ["NavigatorExpectations", "build_scenarios"]
