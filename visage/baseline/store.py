"""Baseline store: persists the last accepted fingerprint per component and viewport."""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path

from pydantic import ValidationError

from visage.errors import BaselineStoreError
from visage.models.baseline import BaselineRegistry
from visage.models.fingerprint import Fingerprint, RegressionResult, RegressionStatus

logger = logging.getLogger(__name__)


class BaselineStoreManager:
    """Manages the baseline registry JSON file."""

    def __init__(self, registry_path: Path, base_url: str):
        self.registry_path = registry_path
        self.base_url = base_url

    def load(self) -> BaselineRegistry:
        """Load registry from disk, or create a new one if none exists yet."""
        if not self.registry_path.exists():
            return BaselineRegistry(base_url=self.base_url)
        try:
            with open(self.registry_path) as f:
                data = json.load(f)
            return BaselineRegistry.model_validate(data)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            # Starting over would report every story as "created" and hide regressions.
            raise BaselineStoreError(
                f"Failed to load baseline registry {self.registry_path}: {e}"
            ) from e

    def save(self, registry: BaselineRegistry) -> None:
        """Persist registry to disk."""
        self.registry_path.parent.mkdir(parents=True, exist_ok=True)
        registry.last_updated = time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())
        tmp_path = self.registry_path.with_suffix(".tmp")
        with open(tmp_path, "w") as f:
            json.dump(registry.model_dump(mode="json"), f, indent=2)
        tmp_path.replace(self.registry_path)
        logger.debug("Saved baseline registry to %s", self.registry_path)

    @staticmethod
    def baseline_key(component: str, viewport: str) -> str:
        return f"{component}__{viewport}"

    def get_baseline(
        self, registry: BaselineRegistry, component: str, viewport: str,
    ) -> Fingerprint | None:
        return registry.baselines.get(self.baseline_key(component, viewport))

    def store_baseline(self, registry: BaselineRegistry, fingerprint: Fingerprint) -> None:
        """Store ``fingerprint`` as the baseline for its key, overwriting."""
        registry.baselines[fingerprint.key] = fingerprint
        logger.debug("Stored baseline for %s", fingerprint.key)

    def apply_result(self, registry: BaselineRegistry, result: RegressionResult) -> bool:
        """Apply the update policy for one result. Returns True if the registry changed.

        Only first sightings are written through. Passed results already
        match; failed ones need an explicit promote().
        """
        if result.status == RegressionStatus.CREATED and result.current is not None:
            self.store_baseline(registry, result.current)
            logger.info("Created baseline for %s", result.current.key)
            return True
        return False

    def promote(self, registry: BaselineRegistry, result: RegressionResult) -> bool:
        """Accept a failed result's current fingerprint as the new baseline."""
        if result.status != RegressionStatus.FAILED or result.current is None:
            return False
        self.store_baseline(registry, result.current)
        logger.info("Promoted new baseline for %s (changed: %s)",
                    result.current.key, ", ".join(result.changed))
        return True

    def clear(self) -> None:
        if self.registry_path.exists():
            self.registry_path.unlink()
            logger.info("Removed baseline registry %s", self.registry_path)
