# erlink/endpoints/__init__.py

# Import routers from each endpoint file
from .hospitals import router as hospitals
from .cases import router as cases

__all__ = ["hospitals", "cases"]
