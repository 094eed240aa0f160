"""
                        Services Module

External integrations behind the hybrid Mock/Real pattern.

Services:
    - factory: submits orders to the pizza factory for fulfillment
"""

from pizza_service.services.factory import get_factory_service

__all__ = ["get_factory_service"]
