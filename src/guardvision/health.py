"""Readiness checks for the API probes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from .settings import Settings


@dataclass
class HealthCheckResult:
    name: str
    status: str  # "pass" | "fail" | "warn"
    detail: Optional[str] = None
    required: bool = True


def _check_detector_config(settings: Settings) -> HealthCheckResult:
    if settings.detector == "gemini":
        if not settings.gemini_api_key:
            return HealthCheckResult(
                name="detector", status="fail", detail="Gemini API key missing"
            )
        return HealthCheckResult(name="detector", status="pass")
    if settings.detector == "ollama":
        return HealthCheckResult(name="detector", status="pass")
    return HealthCheckResult(
        name="detector",
        status="fail",
        detail=f"Unknown detector backend: {settings.detector}",
    )


def _check_detector_endpoint(url: str) -> HealthCheckResult:
    import requests

    try:
        resp = requests.request("HEAD", url, timeout=2)
        if resp.status_code >= 500:
            return HealthCheckResult(
                name="detector_endpoint", status="fail", detail=f"HTTP {resp.status_code}"
            )
        if resp.status_code == 405:
            return HealthCheckResult(
                name="detector_endpoint",
                status="warn",
                detail="HEAD not supported, endpoint reachable",
            )
        return HealthCheckResult(name="detector_endpoint", status="pass")
    except Exception as exc:  # pragma: no cover - network dependent
        return HealthCheckResult(name="detector_endpoint", status="fail", detail=str(exc))


def run_readiness_checks(settings: Settings) -> List[HealthCheckResult]:
    checks: List[HealthCheckResult] = [_check_detector_config(settings)]
    if settings.readiness_check_detector:
        url = settings.ollama_url if settings.detector == "ollama" else settings.gemini_url
        checks.append(_check_detector_endpoint(url))
    return checks


__all__ = ["HealthCheckResult", "run_readiness_checks"]
