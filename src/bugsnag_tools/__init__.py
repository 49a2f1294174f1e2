"""BugSnag error-monitoring adapter exposing agent tools."""

__version__ = "0.1.0"
