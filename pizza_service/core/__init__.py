"""
Core module initialization.
Exports configuration, logging and error utilities.
"""

from pizza_service.core.config import get_settings, Settings, EnvironmentMode
from pizza_service.core.exceptions import PizzaServiceError

__all__ = ["get_settings", "Settings", "EnvironmentMode", "PizzaServiceError"]
