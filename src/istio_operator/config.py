"""Operator configuration loaded once at startup and passed explicitly."""

from __future__ import annotations

import os
from dataclasses import dataclass

RESOURCE_DIR_ENV = "ISTIO_OPERATOR_RESOURCE_DIR"
HELM_BINARY_ENV = "ISTIO_OPERATOR_HELM_BINARY"
HELM_TIMEOUT_ENV = "ISTIO_OPERATOR_HELM_TIMEOUT"
WORKERS_ENV = "ISTIO_OPERATOR_WORKERS"
METRICS_PORT_ENV = "ISTIO_OPERATOR_METRICS_PORT"
REQUEST_TIMEOUT_ENV = "ISTIO_OPERATOR_REQUEST_TIMEOUT"
BACKOFF_BASE_ENV = "ISTIO_OPERATOR_BACKOFF_BASE_SECONDS"
BACKOFF_MAX_ENV = "ISTIO_OPERATOR_BACKOFF_MAX_SECONDS"


@dataclass(frozen=True)
class OperatorConfig:
    resource_directory: str = "/var/lib/istio-operator/resources"
    helm_binary: str = "helm"
    helm_timeout: float = 300.0
    workers: int = 4
    metrics_port: int = 8080
    request_timeout: float = 30.0
    backoff_base_delay: float = 0.005
    backoff_max_delay: float = 1000.0

    def __post_init__(self) -> None:
        if self.workers < 1:
            raise ValueError(f"workers must be at least 1, got {self.workers}")
        if self.backoff_base_delay <= 0 or self.backoff_max_delay < self.backoff_base_delay:
            raise ValueError(
                "backoff delays must satisfy 0 < base <= max, got "
                f"base={self.backoff_base_delay} max={self.backoff_max_delay}"
            )

    def backoff_delay(self, retry: int) -> float:
        """Exponential delay for the given retry count, capped at the max."""
        try:
            return min(self.backoff_base_delay * 2**retry, self.backoff_max_delay)
        except OverflowError:
            return self.backoff_max_delay

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> OperatorConfig:
        """Build a config from environment variables, falling back to defaults."""
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            resource_directory=env.get(RESOURCE_DIR_ENV, defaults.resource_directory),
            helm_binary=env.get(HELM_BINARY_ENV, defaults.helm_binary),
            helm_timeout=float(env.get(HELM_TIMEOUT_ENV, defaults.helm_timeout)),
            workers=int(env.get(WORKERS_ENV, defaults.workers)),
            metrics_port=int(env.get(METRICS_PORT_ENV, defaults.metrics_port)),
            request_timeout=float(env.get(REQUEST_TIMEOUT_ENV, defaults.request_timeout)),
            backoff_base_delay=float(env.get(BACKOFF_BASE_ENV, defaults.backoff_base_delay)),
            backoff_max_delay=float(env.get(BACKOFF_MAX_ENV, defaults.backoff_max_delay)),
        )
