"""
Force-directed simulation for the free graph view.

A velocity Verlet style simulation with four composable forces:
- link: springs toward a target length along every edge
- charge: pairwise repulsion (NumPy-vectorized, O(n^2))
- center: weak pull of every node toward the canvas center
- collide: positional constraint keeping node circles apart

Energy ("alpha") decays geometrically each tick until it drops below
alpha_min. Dragging pins a node and re-energizes the simulation.

Ticks are driven either synchronously (`run`) or cooperatively through a
SimulationRunner that does one tick per animation frame on the asyncio loop.
"""

import asyncio
import logging
import math
from typing import TYPE_CHECKING, Callable, Optional

import numpy as np

from .config import RenderSettings

if TYPE_CHECKING:
    from .models import RenderModel

logger = logging.getLogger(__name__)

INITIAL_RADIUS = 10
INITIAL_ANGLE = math.pi * (3 - math.sqrt(5))


class LinkForce:
    """Springs along edges, biased so low-degree endpoints move more."""

    def __init__(self, sources: np.ndarray, targets: np.ndarray, degree: np.ndarray,
                 distance: float = 70, strength: float = 0.7):
        self.sources = sources
        self.targets = targets
        self.distance = distance
        self.strength = strength
        if len(sources):
            src_count = degree[sources]
            self.bias = src_count / (src_count + degree[targets])
        else:
            self.bias = np.zeros(0)

    def apply(self, sim: "ForceSimulation", alpha: float):
        if not len(self.sources):
            return
        p, v = sim.pos, sim.vel
        src, tgt = self.sources, self.targets

        delta = (p[tgt] + v[tgt]) - (p[src] + v[src])
        length = np.hypot(delta[:, 0], delta[:, 1])
        scale = np.zeros_like(length)
        ok = length > 0
        scale[ok] = (length[ok] - self.distance) / length[ok] * alpha * self.strength
        delta *= scale[:, np.newaxis]

        np.add.at(v, tgt, -delta * self.bias[:, np.newaxis])
        np.add.at(v, src, delta * (1 - self.bias)[:, np.newaxis])


class ManyBodyForce:
    """All-pairs charge. Negative strength repels."""

    def __init__(self, strength: float = -300, distance_min: float = 1.0):
        self.strength = strength
        self.distance_min2 = distance_min * distance_min

    def apply(self, sim: "ForceSimulation", alpha: float):
        p = sim.pos
        if len(p) < 2:
            return
        diff = p[np.newaxis, :, :] - p[:, np.newaxis, :]  # diff[i, j] = p[j] - p[i]
        d2 = np.sum(diff ** 2, axis=2)
        d2 = np.where(d2 < self.distance_min2, np.sqrt(self.distance_min2 * d2), d2)
        np.fill_diagonal(d2, np.inf)
        d2[d2 == 0] = np.inf  # Coincident nodes are separated by collide

        sim.vel += self.strength * alpha * np.sum(diff / d2[:, :, np.newaxis], axis=1)


class CenterForce:
    """Weak pull toward a fixed point."""

    def __init__(self, x: float, y: float, strength: float = 0.05):
        self.center = np.array([x, y], dtype=float)
        self.strength = strength

    def apply(self, sim: "ForceSimulation", alpha: float):
        sim.vel += (self.center - sim.pos) * self.strength * alpha


class CollideForce:
    """
    Minimum separation between node centers: factor * (r_a + r_b).

    Applied to positions after integration, so it holds at the end of every
    tick unless passes run out. Pinned nodes do not move.
    """
    positional = True

    def __init__(self, radii: np.ndarray, factor: float = 1.5, passes: int = 8):
        self.radii = radii * factor
        self.passes = passes

    def overlapping_pairs(self, p: np.ndarray) -> np.ndarray:
        diff = p[np.newaxis, :, :] - p[:, np.newaxis, :]
        dist = np.sqrt(np.sum(diff ** 2, axis=2))
        min_sep = self.radii[:, np.newaxis] + self.radii[np.newaxis, :]
        return np.argwhere(np.triu(dist < min_sep - 1e-9, k=1))

    def apply(self, sim: "ForceSimulation", alpha: float):
        p = sim.pos
        if len(p) < 2:
            return
        pinned = sim.pinned_mask()

        for _ in range(self.passes):
            pairs = self.overlapping_pairs(p)
            if not len(pairs):
                return
            for i, j in pairs:
                if pinned[i] and pinned[j]:
                    continue
                dx, dy = p[j] - p[i]
                dist = math.hypot(dx, dy)
                need = self.radii[i] + self.radii[j] - dist
                if need <= 0:
                    continue
                if dist == 0:
                    # Deterministic direction for coincident centers
                    angle = (i + 1) * INITIAL_ANGLE + j
                    ux, uy = math.cos(angle), math.sin(angle)
                else:
                    ux, uy = dx / dist, dy / dist
                if pinned[i]:
                    wi, wj = 0.0, 1.0
                elif pinned[j]:
                    wi, wj = 1.0, 0.0
                else:
                    wi = wj = 0.5
                p[i, 0] -= ux * need * wi
                p[i, 1] -= uy * need * wi
                p[j, 0] += ux * need * wj
                p[j, 1] += uy * need * wj


class ForceSimulation:
    """
    Live layout state for one render pass.

    Owns working copies of the node positions; the render model it was
    built from is never touched.
    """

    def __init__(self, model: "RenderModel", width: float, height: float,
                 settings: RenderSettings | None = None):
        s = settings or RenderSettings()
        self.settings = s
        self.ids = [n.id for n in model.nodes]
        self.index = {node_id: i for i, node_id in enumerate(self.ids)}
        n = len(self.ids)

        self.radii = np.array(
            [s.leaf_radius if node.is_leaf else s.node_radius for node in model.nodes],
            dtype=float,
        )
        self.pos = self._initial_positions(n, width / 2, height / 2)
        self.vel = np.zeros((n, 2))
        self.fixed = np.full((n, 2), np.nan)

        self.alpha = 1.0
        self.alpha_min = s.alpha_min
        self.alpha_decay = s.alpha_decay
        self.alpha_target = 0.0
        self.velocity_decay = s.velocity_decay
        self.tick_count = 0

        links = [
            (self.index[e.source_id], self.index[e.target_id])
            for e in model.edges
            if e.source_id in self.index and e.target_id in self.index
        ]
        sources = np.array([a for a, _ in links], dtype=int)
        targets = np.array([b for _, b in links], dtype=int)
        degree = np.zeros(n)
        np.add.at(degree, sources, 1)
        np.add.at(degree, targets, 1)

        self.forces: dict[str, object] = {
            "link": LinkForce(sources, targets, degree, s.link_distance, s.link_strength),
            "charge": ManyBodyForce(s.charge_strength),
            "center": CenterForce(width / 2, height / 2, s.center_strength),
            "collide": CollideForce(self.radii, s.collision_factor, s.collision_passes),
        }

    @staticmethod
    def _initial_positions(n: int, cx: float, cy: float) -> np.ndarray:
        """Phyllotaxis spiral around the center (deterministic)."""
        i = np.arange(n, dtype=float)
        radius = INITIAL_RADIUS * np.sqrt(0.5 + i)
        angle = i * INITIAL_ANGLE
        return np.column_stack([cx + radius * np.cos(angle), cy + radius * np.sin(angle)])

    # --- Forces ---

    def force(self, name: str):
        return self.forces.get(name)

    def set_force(self, name: str, force) -> "ForceSimulation":
        """Add, replace or (with None) remove a force."""
        if force is None:
            self.forces.pop(name, None)
        else:
            self.forces[name] = force
        return self

    # --- Ticking ---

    @property
    def settled(self) -> bool:
        return self.alpha < self.alpha_min

    def tick(self, iterations: int = 1):
        """Advance the simulation; one iteration is one animation frame."""
        for _ in range(iterations):
            self.alpha += (self.alpha_target - self.alpha) * self.alpha_decay

            for force in self.forces.values():
                if not getattr(force, "positional", False):
                    force.apply(self, self.alpha)

            self._integrate()

            for force in self.forces.values():
                if getattr(force, "positional", False):
                    force.apply(self, self.alpha)

            self.tick_count += 1

    def _integrate(self):
        pinned = self.pinned_mask()
        free = ~pinned
        self.vel *= 1 - self.velocity_decay
        self.pos[free] += self.vel[free]
        self.pos[pinned] = self.fixed[pinned]
        self.vel[pinned] = 0.0

    def run(self, max_ticks: int | None = None) -> int:
        """
        Tick until alpha drops below alpha_min (or max_ticks is reached).

        Returns:
            Number of ticks performed
        """
        if max_ticks is None and self.alpha_target >= self.alpha_min:
            raise RuntimeError("Simulation cannot settle while its alpha target is raised")
        ticks = 0
        while not self.settled:
            if max_ticks is not None and ticks >= max_ticks:
                break
            self.tick()
            ticks += 1
        logger.debug("Simulation ran %d ticks (alpha=%.5f)", ticks, self.alpha)
        return ticks

    def restart(self, alpha: float = 1.0):
        """Re-energize a settled simulation."""
        self.alpha = alpha

    # --- Pinning and drag ---

    def pinned_mask(self) -> np.ndarray:
        return ~np.isnan(self.fixed[:, 0])

    def pin(self, node_id: str, x: float, y: float):
        i = self.index[node_id]
        self.fixed[i] = (x, y)

    def unpin(self, node_id: str):
        i = self.index[node_id]
        self.fixed[i] = np.nan

    def is_pinned(self, node_id: str) -> bool:
        return not np.isnan(self.fixed[self.index[node_id], 0])

    def drag_start(self, node_id: str, x: float | None = None, y: float | None = None):
        """Pin the node where it is (or at x, y) and re-energize."""
        i = self.index[node_id]
        if x is None or y is None:
            x, y = self.pos[i]
        self.pin(node_id, x, y)
        self.alpha_target = self.settings.drag_alpha_target
        self.alpha = max(self.alpha, self.settings.drag_alpha_target)

    def drag(self, node_id: str, x: float, y: float):
        self.pin(node_id, x, y)

    def drag_end(self, node_id: str):
        """Release the pin and let the layout relax back to rest."""
        self.unpin(node_id)
        self.alpha_target = 0.0

    # --- Reading positions ---

    def position(self, node_id: str) -> tuple[float, float]:
        x, y = self.pos[self.index[node_id]]
        return (float(x), float(y))

    def positions(self) -> dict[str, tuple[float, float]]:
        return {
            node_id: (float(self.pos[i, 0]), float(self.pos[i, 1]))
            for i, node_id in enumerate(self.ids)
        }

    def radius(self, node_id: str) -> float:
        return float(self.radii[self.index[node_id]])


class CancellationToken:
    """Checked by the runner before every tick."""

    def __init__(self):
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class SimulationRunner:
    """
    Cooperative tick loop on the asyncio event loop.

    Does one tick per frame and yields between ticks so input handling stays
    responsive. Stops on its own once the simulation settles; `wake()` starts
    it again after a drag re-energizes the simulation.
    A frame that raises stops the loop and is handed to `on_error`.
    """

    def __init__(self, simulation: ForceSimulation,
                 on_tick: Callable[[ForceSimulation], None],
                 frame_interval: float | None = None,
                 on_settled: Optional[Callable[[ForceSimulation], None]] = None,
                 on_error: Optional[Callable[[Exception], None]] = None):
        self.simulation = simulation
        self.on_tick = on_tick
        self.on_settled = on_settled
        self.on_error = on_error
        self.frame_interval = (
            simulation.settings.frame_interval if frame_interval is None else frame_interval
        )
        self._token: Optional[CancellationToken] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        """Schedule the loop. Requires a running event loop."""
        loop = asyncio.get_running_loop()
        if self.running:
            return
        self._token = CancellationToken()
        self._task = loop.create_task(self._run(self._token))

    def wake(self) -> bool:
        """Start ticking if possible. Returns False when no loop is running."""
        if self.running:
            return True
        try:
            self.start()
        except RuntimeError:
            return False
        return True

    async def _run(self, token: CancellationToken):
        sim = self.simulation
        while not token.cancelled and not sim.settled:
            try:
                sim.tick()
                self.on_tick(sim)
            except Exception as e:
                if self.on_error is None:
                    raise
                logger.exception("Simulation frame failed")
                self.on_error(e)
                return
            await asyncio.sleep(self.frame_interval)
        if not token.cancelled and self.on_settled is not None:
            self.on_settled(sim)

    def settle(self, max_ticks: int | None = None) -> int:
        """Run to rest synchronously and publish the final frame."""
        ticks = self.simulation.run(max_ticks)
        self.on_tick(self.simulation)
        return ticks

    def stop(self):
        """Cancel the loop. Safe to call any number of times."""
        if self._token is not None:
            self._token.cancel()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
