"""
Engine configuration.
The engine never reads process-wide settings itself: build an EngineConfig
(directly or with `from_env()`) and hand it to the engine or app factory.
"""

import os
from dataclasses import dataclass
from typing import Optional

from rental_engine.utils.constants import BOOKING_PREFIX, CUSTOMER_PREFIX, MAX_ID_ATTEMPTS, SEQUENCE_WIDTH

STORE_BACKENDS = ("memory", "pickle")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class EngineConfig:
    # Store provider
    store_backend: str = "memory"
    store_path: Optional[str] = None  # pickle backend only

    # Identifier formats
    booking_prefix: str = BOOKING_PREFIX
    customer_prefix: str = CUSTOMER_PREFIX
    sequence_width: int = SEQUENCE_WIDTH
    max_id_attempts: int = MAX_ID_ATTEMPTS

    # Threads for car/customer operations during reconciliation
    reconcile_workers: int = 1

    # Flask
    secret_key: str = "dev-secret-change-me"
    debug: bool = False
    testing: bool = False

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Build a config from RENTAL_ENGINE_* environment variables."""
        cfg = cls(
            store_backend=os.environ.get("RENTAL_ENGINE_STORE", "memory"),
            store_path=os.environ.get("RENTAL_ENGINE_STORE_PATH") or None,
            booking_prefix=os.environ.get("RENTAL_ENGINE_BOOKING_PREFIX", BOOKING_PREFIX),
            customer_prefix=os.environ.get("RENTAL_ENGINE_CUSTOMER_PREFIX", CUSTOMER_PREFIX),
            sequence_width=int(os.environ.get("RENTAL_ENGINE_SEQUENCE_WIDTH", SEQUENCE_WIDTH)),
            max_id_attempts=int(os.environ.get("RENTAL_ENGINE_MAX_ID_ATTEMPTS", MAX_ID_ATTEMPTS)),
            reconcile_workers=int(os.environ.get("RENTAL_ENGINE_RECONCILE_WORKERS", 1)),
            secret_key=os.environ.get("SECRET_KEY") or cls.secret_key,
            debug=_env_bool("RENTAL_ENGINE_DEBUG", False),
        )
        cfg.validate()
        return cfg

    def validate(self) -> "EngineConfig":
        """Raise ValueError on settings the engine cannot run with."""
        if self.store_backend not in STORE_BACKENDS:
            raise ValueError(f"store_backend must be one of {', '.join(STORE_BACKENDS)}")
        if not self.booking_prefix or not self.customer_prefix:
            raise ValueError("Identifier prefixes must not be empty")
        if self.sequence_width < 1:
            raise ValueError("sequence_width must be >= 1")
        if self.max_id_attempts < 1:
            raise ValueError("max_id_attempts must be >= 1")
        if self.reconcile_workers < 1:
            raise ValueError("reconcile_workers must be >= 1")
        return self
