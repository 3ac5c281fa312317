"""Core package initializer for Call Sage.

Downstream code imports from the submodules directly, e.g.:
    from callsage.core.settings import settings, load_settings, Settings, get_logger
    from callsage.core.scoring import compute_overall_score
"""

from __future__ import annotations

__all__ = ["__doc__"]
