"""
Integration tests package.

Full request flows through create_app() against an in-memory SQLite
database.
"""
