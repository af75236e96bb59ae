"""Configuration models for the prerequisite engine."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, field_validator


class EngineConfig(BaseModel):
    # Storage
    data_dir: str = "./test-data"

    # Cache settings
    default_cache_expiry_ms: Optional[int] = None  # None = valid until cleared

    # Planning
    estimated_test_duration_ms: int = 5000

    # Validation
    warn_on_order_drift: bool = True
    report_disabled_prerequisites: bool = True

    # Host
    default_suite_name: str = "Default"

    @field_validator("default_cache_expiry_ms", "estimated_test_duration_ms")
    @classmethod
    def non_negative(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 0:
            raise ValueError("must be >= 0")
        return v

    @property
    def data_path(self) -> Path:
        return Path(self.data_dir)

    @classmethod
    def load(cls, path: str | Path) -> "EngineConfig":
        """Load config from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            data = json.load(f)
        return cls(**data)

    def save(self, path: str | Path) -> None:
        """Save config to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.model_dump(), f, indent=2)
