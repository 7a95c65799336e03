"""crossbuild: run cargo inside a target-matched container when the host cannot build or run the target natively."""

__version__ = "0.3.0"
