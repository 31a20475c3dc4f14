"""
Shared CSRFProtect instance.

Initialised in create_app(). The JSON API authenticates with bearer tokens,
so create_app() exempts every API blueprint; the instance is kept so any
cookie-authenticated form added later is protected by default.
"""

from flask_wtf.csrf import CSRFProtect

csrf = CSRFProtect()
