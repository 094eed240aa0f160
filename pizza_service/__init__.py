"""
                JWT Pizza Service

Multi-tenant pizza ordering backend: diners, franchisees and admins
authenticate, manage the franchise/store hierarchy and place orders
that are relayed to the pizza factory.

Version: 1.0.0
"""

__version__ = "1.0.0"
