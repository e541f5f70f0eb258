# telecare/routers/__init__.py
from . import health
from . import auth
from . import doctors
from . import availability
from . import appointments
from . import admin

__all__ = ["health", "auth", "doctors", "availability", "appointments", "admin"]
