"""newt-healthd: liveness/readiness probe server for load balancer health checks."""

__version__ = "0.1.0"
