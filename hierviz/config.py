"""
Render settings.

All tunable layout and physics constants live in one pydantic model so a
render can be reproduced from a single value. Defaults can be overridden
with HIERVIZ_<FIELD> environment variables (e.g. HIERVIZ_CHARGE_STRENGTH=-500).
"""

import os

from pydantic import BaseModel, Field

ENV_PREFIX = "HIERVIZ_"

# Backend defaults
API_HOST = os.environ.get("HIERVIZ_API_HOST", "127.0.0.1")
API_PORT = int(os.environ.get("HIERVIZ_API_PORT", "8766"))


class RenderSettings(BaseModel):
    """Layout, physics and drawing constants."""

    # Host element fallback size (used when the host reports 0)
    default_width: float = 900
    default_height: float = 600

    # Column (graph) layout
    node_width: float = 160
    node_height: float = 40
    h_spacing: float = 80
    v_spacing: float = 30
    column_origin_x: float = 50

    # Tree layout
    margin_top: float = 20
    margin_right: float = 120
    margin_bottom: float = 20
    margin_left: float = 120
    cousin_separation: float = Field(default=2.0, ge=1.0)
    tree_node_radius: float = 5

    # Force simulation
    link_distance: float = 70
    link_strength: float = Field(default=0.7, gt=0, le=1)
    charge_strength: float = -300
    center_strength: float = 0.05
    collision_factor: float = 1.5
    collision_passes: int = 8
    leaf_radius: float = 6
    node_radius: float = 10
    alpha_min: float = 0.001
    velocity_decay: float = 0.4
    drag_alpha_target: float = 0.3
    frame_interval: float = 1 / 60

    # Drawing
    label_max_chars: int = 20
    zoom_min: float = 0.1
    zoom_max: float = 4.0

    @property
    def alpha_decay(self) -> float:
        """Per-tick decay that takes alpha from 1 to alpha_min in ~300 ticks."""
        return 1 - self.alpha_min ** (1 / 300)


def settings_from_env(environ: dict[str, str] | None = None) -> RenderSettings:
    """Build settings, applying HIERVIZ_* overrides from the environment."""
    environ = os.environ if environ is None else environ
    overrides = {}
    for name in RenderSettings.model_fields:
        key = f"{ENV_PREFIX}{name.upper()}"
        if key in environ:
            overrides[name] = environ[key]
    return RenderSettings(**overrides)
