"""FastAPI Dependencies.

The switchover components are built once per application and stored on
``app.state``; handlers receive them through these dependencies.
"""

from fastapi import Request

from src.bluegreen import MigrationController, SwitchoverSystem


def get_system(request: Request) -> SwitchoverSystem:
    """Return the SwitchoverSystem attached to the running application."""
    return request.app.state.system


def get_controller(request: Request) -> MigrationController:
    return get_system(request).controller
