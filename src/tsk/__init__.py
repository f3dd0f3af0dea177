"""tsk - agent-first task and memory tracker."""

__version__ = "0.4.0"
