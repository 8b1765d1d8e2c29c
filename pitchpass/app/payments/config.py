"""Payment configuration helpers."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional
import os


@dataclass(frozen=True)
class PaymentsConfig:
    """Configuration for subscription payments."""

    processor_name: str
    max_retries: int
    backoff_seconds: float
    storage_namespace: str
    sandbox_decline_rate: float
    currency: str


def _to_int(value: Optional[str], *, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Expected integer value, got {value!r}") from exc


def _to_float(value: Optional[str], *, default: float) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Expected float value, got {value!r}") from exc


def load_payments_config(env: Optional[Mapping[str, str]] = None) -> PaymentsConfig:
    """Load :class:`PaymentsConfig` from environment variables."""

    env_mapping = os.environ if env is None else env

    processor_name = (env_mapping.get("PAYMENTS_PROCESSOR") or "sandbox").strip().lower() or "sandbox"
    max_retries = max(0, _to_int(env_mapping.get("PAYMENTS_MAX_RETRIES"), default=3))
    backoff_seconds = max(0.0, _to_float(env_mapping.get("PAYMENTS_BACKOFF_SECONDS"), default=1.0))
    storage_namespace = env_mapping.get("PAYMENTS_STORAGE_NAMESPACE") or "pitchpass"
    decline_rate = _to_float(env_mapping.get("PAYMENTS_SANDBOX_DECLINE_RATE"), default=0.0)
    sandbox_decline_rate = min(1.0, max(0.0, decline_rate))
    currency = (env_mapping.get("PAYMENTS_CURRENCY") or "NGN").strip().upper()

    return PaymentsConfig(
        processor_name=processor_name,
        max_retries=max_retries,
        backoff_seconds=backoff_seconds,
        storage_namespace=storage_namespace,
        sandbox_decline_rate=sandbox_decline_rate,
        currency=currency,
    )


__all__ = ["PaymentsConfig", "load_payments_config"]
