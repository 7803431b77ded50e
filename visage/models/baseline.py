"""Baseline registry data structures."""

from __future__ import annotations

from pydantic import BaseModel, Field

from visage.models.fingerprint import Fingerprint


class BaselineRegistry(BaseModel):
    base_url: str
    last_updated: str = ""
    baselines: dict[str, Fingerprint] = Field(default_factory=dict)
    # key format: "{component}__{viewport}"
