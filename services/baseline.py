from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Optional

from models.records import Baseline
from settings import baseline_paths, get_settings

logger = logging.getLogger(__name__)


class BaselineStore:
    """Two small decimal files holding the gas sensor's baseline references."""

    def __init__(self, co2_path: Path, voc_path: Path) -> None:
        self.co2_path = co2_path
        self.voc_path = voc_path

    def load(self) -> Optional[Baseline]:
        if not (self.co2_path.exists() and self.voc_path.exists()):
            logger.info(
                "No existing baseline files found for SGP30, no baseline will be used",
                extra={"path": self.co2_path.parent},
            )
            return None

        try:
            co2_raw = self.co2_path.read_text()
            voc_raw = self.voc_path.read_text()
            logger.debug("Read raw baseline values CO2=%r TVOC=%r", co2_raw, voc_raw)
            baseline = Baseline(
                co2_reference=int(co2_raw.strip()),
                voc_reference=int(voc_raw.strip()),
            )
        except (OSError, ValueError) as exc:
            logger.error(
                "Failed to read existing baseline values for SGP30, no baseline will be used",
                extra={"reason": str(exc), "path": self.co2_path.parent},
            )
            return None

        logger.info(
            "Found baseline values for SGP30, CO2: %d, TVOC: %d",
            baseline.co2_reference,
            baseline.voc_reference,
        )
        return baseline

    def save(self, baseline: Baseline) -> bool:
        try:
            self.co2_path.parent.mkdir(parents=True, exist_ok=True)
            self.co2_path.write_text(str(baseline.co2_reference))
            self.voc_path.parent.mkdir(parents=True, exist_ok=True)
            self.voc_path.write_text(str(baseline.voc_reference))
        except OSError as exc:
            logger.error(
                "Failed to save SGP30 baseline to a file",
                extra={"reason": str(exc), "path": self.co2_path.parent},
            )
            return False
        logger.debug(
            "Saved CO2 baseline of %d and TVOC baseline of %d",
            baseline.co2_reference,
            baseline.voc_reference,
        )
        return True


@lru_cache
def build_default_baseline_store(baseline_dir: Optional[str] = None) -> BaselineStore:
    settings = get_settings()
    if baseline_dir is not None:
        root = Path(baseline_dir)
        return BaselineStore(root / "sgp30_co2.txt", root / "sgp30_tvoc.txt")
    co2, voc = baseline_paths(settings)
    return BaselineStore(Path(co2), Path(voc))
