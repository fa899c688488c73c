"""Persistencia SQLite de la configuración del análisis (nunca de resultados)."""

from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import asdict
from pathlib import Path
from typing import Any

from cgm_insights.config import AnalysisSettings, CategoryMode, GlucoseThresholds
from cgm_insights.units import GlucoseUnit

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS app_config (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""


class SettingsStore:
    """Repositorio SQLite key/value para ``AnalysisSettings``."""

    def __init__(self, db_path: Path) -> None:
        """Create store and ensure schema exists."""
        self._db_path = db_path
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.executescript(SCHEMA_SQL)
            conn.commit()

    def load_settings(self) -> AnalysisSettings:
        """Devuelve la configuración guardada o los defaults.

        Each stored key that cannot be read falls back to its default on
        its own.
        """
        defaults = AnalysisSettings()
        with self._connect() as conn:
            rows = conn.execute("SELECT key, value FROM app_config").fetchall()
        values = {row["key"]: row["value"] for row in rows}

        settings = AnalysisSettings(
            thresholds=_parse_thresholds(values.get("thresholds"), defaults.thresholds),
            unit=_parse_enum(values.get("unit"), GlucoseUnit, defaults.unit),
            category_mode=_parse_enum(
                _parse_int(values.get("category_mode"), None),
                CategoryMode,
                defaults.category_mode,
            ),
            agp_resolution_minutes=_parse_int(
                values.get("agp_resolution_minutes"), defaults.agp_resolution_minutes
            ),
            roc_smoothing_minutes=_parse_int(
                values.get("roc_smoothing_minutes"), defaults.roc_smoothing_minutes
            ),
        )
        try:
            settings.validate()
        except ValueError as exc:
            logger.warning(f"Stored settings are invalid, using defaults: {exc}")
            return defaults
        return settings

    def save_settings(self, settings: AnalysisSettings) -> None:
        """Valida y guarda la configuración en la tabla key/value.

        Raises:
            InvalidThresholdsError: If the thresholds are inconsistent.
            ValueError: If the AGP resolution or smoothing window is invalid.
        """
        settings.validate()
        payload = {
            "thresholds": json.dumps(asdict(settings.thresholds)),
            "unit": settings.unit.value,
            "category_mode": str(int(settings.category_mode)),
            "agp_resolution_minutes": str(settings.agp_resolution_minutes),
            "roc_smoothing_minutes": str(settings.roc_smoothing_minutes),
        }
        with self._connect() as conn:
            conn.executemany(
                """
                INSERT INTO app_config(key, value) VALUES(?, ?)
                ON CONFLICT(key) DO UPDATE SET value=excluded.value
                """,
                payload.items(),
            )
            conn.commit()


def _parse_thresholds(
    raw: str | None, default: GlucoseThresholds
) -> GlucoseThresholds:
    if raw is None:
        return default
    try:
        parsed: Any = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Stored thresholds are not valid JSON, using defaults")
        return default
    if not isinstance(parsed, dict):
        return default
    try:
        return GlucoseThresholds(
            very_low=float(parsed["very_low"]),
            low=float(parsed["low"]),
            high=float(parsed["high"]),
            very_high=float(parsed["very_high"]),
        )
    except (KeyError, TypeError, ValueError):
        return default


def _parse_int(raw: str | None, default: int | None) -> int | None:
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _parse_enum(raw: object, enum_cls: Any, default: Any) -> Any:
    if raw is None:
        return default
    try:
        return enum_cls(raw)
    except ValueError:
        return default
