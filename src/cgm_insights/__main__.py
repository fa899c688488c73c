"""Punto de entrada ``python -m cgm_insights``."""

from __future__ import annotations

from cgm_insights.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
