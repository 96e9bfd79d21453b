"""Personal TV watch tracker."""

__version__ = "0.1.0"
