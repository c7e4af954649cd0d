# synthmind/load_test/__init__.py
from synthmind.load_test.routes import load_test_bp

__all__ = ["load_test_bp"]
