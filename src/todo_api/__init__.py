"""
Task Items API package.

The FastAPI application lives in todo_api.main (todo_api.main:app); it is not
imported here so that the service, repositories and validators can be used
without building the app.
"""

__version__ = "0.1.0"
