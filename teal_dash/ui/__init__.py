"""
Dash adapter: layout builders, the reactive bridge callbacks and
create_dash_app().
"""

from .dash_app import create_dash_app

__all__ = ["create_dash_app"]
