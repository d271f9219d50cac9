"""deploywatch — post-deployment health monitoring and alerting."""

__version__ = "0.1.0"
