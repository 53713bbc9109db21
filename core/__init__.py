"""
Core business logic package for AttenWell.

Contains the headless FocusSessionEngine, its periodic tasks and the
navigation guard. Zero UI dependencies.
"""

from core.engine import EngineState, FocusSessionEngine
from core.navigation import NavigationGuard, NavigationKind

__all__ = ["EngineState", "FocusSessionEngine", "NavigationGuard", "NavigationKind"]
