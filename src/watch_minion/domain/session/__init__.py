"""Session domain - cloud authentication and the session lifecycle."""

from .auth import Session
from .lifecycle import LifecycleState, SessionController

__all__ = ["Session", "LifecycleState", "SessionController"]
