# synthmind/probes/engines/browser_engine.py
"""
Browser experience probe.

Loads the target in headless Chromium (Playwright) and scores what a real
visitor gets: load speed plus a handful of in-page accessibility, SEO and
best-practice heuristics.

Two strategies, chosen by a single dispatcher (BrowserProbe):

    RealAudit       — launches Chromium, navigates with a 30s timeout,
                      waits for network idle, measures wall-clock load time
                      and evaluates the heuristics in-page.
    SimulatedAudit  — plausible randomized scores after a short fixed delay,
                      flagged is_simulated=True. Used in demo mode
                      (EXECUTION_MODE=demo) and as the fallback when a real
                      audit fails for any reason.

Scoring (RealAudit):
    accessibility  = images with alt text / images * 100   (100 with no images)
    seo            = mean(title present, meta description present) * 100
    bestPractices  = mean(https ? 100 : 0, 100)
                     NOTE: the second term is a fixed placeholder, so this
                     score never drops below 50. Kept as-is for comparability.
    performance    = max(0, 100 - loadTimeMs / 100)      (10s+ → 0)
    interactivity  = min(100, performance + 5)
    All five are rounded to integers.

The probe never reports failure: a broken real audit degrades to a
flagged simulated result.
"""

from __future__ import annotations

import logging
import os
import random
import time
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from playwright.sync_api import sync_playwright

from synthmind.probes.analyzers.scoring import round_half_up
from synthmind.probes.base import BaseProbe, BrowserAudit, ProbeRequest

logger = logging.getLogger(__name__)

NAVIGATION_TIMEOUT_MS = 30_000
SIMULATION_DELAY_SECONDS = 1.0

# (low, high) for each simulated score
SIMULATED_RANGES: Dict[str, tuple] = {
    "performance": (75, 95),
    "accessibility": (85, 95),
    "best_practices": (80, 95),
    "seo": (90, 100),
    "interactivity": (70, 95),
}

# Runs in the page; returns raw facts, scoring happens in Python.
PAGE_SIGNALS_JS = """() => {
    const images = Array.from(document.querySelectorAll("img"));
    return {
        images: images.length,
        imagesWithAlt: images.filter(img => img.alt && img.alt.trim().length > 0).length,
        hasTitle: !!(document.title && document.title.trim().length > 0),
        hasMetaDescription: !!document.querySelector('meta[name="description"]'),
        protocol: window.location.protocol,
    };
}"""


def is_simulation_mode() -> bool:
    return os.getenv("EXECUTION_MODE", "").strip().lower() == "demo"


def score_page(load_time_ms: float, signals: Dict[str, Any], url: str = "") -> BrowserAudit:
    """
    Apply the fixed browser heuristics to the facts gathered from a page.

    Args:
        load_time_ms: Wall-clock navigation time.
        signals:      Output of PAGE_SIGNALS_JS.
        url:          Final page URL; used for the HTTPS check when the page
                      did not report its protocol.
    """
    images = int(signals.get("images") or 0)
    with_alt = int(signals.get("imagesWithAlt") or 0)
    accessibility = (with_alt / images) * 100 if images > 0 else 100.0

    seo = ((100 if signals.get("hasTitle") else 0) + (100 if signals.get("hasMetaDescription") else 0)) / 2

    protocol = signals.get("protocol") or f"{urlparse(url).scheme}:"
    is_https = protocol == "https:"
    best_practices = ((100 if is_https else 0) + 100) / 2

    performance = max(0.0, 100 - load_time_ms / 100)
    interactivity = min(100.0, performance + 5)

    return BrowserAudit(
        performance=int(round_half_up(performance)),
        accessibility=int(round_half_up(accessibility)),
        best_practices=int(round_half_up(best_practices)),
        seo=int(round_half_up(seo)),
        interactivity=int(round_half_up(interactivity)),
        load_time_ms=int(round_half_up(load_time_ms)),
    )


class SimulatedAudit:
    """Synthetic audit with randomized scores inside the documented ranges."""

    def __init__(self, delay_seconds: float = SIMULATION_DELAY_SECONDS, rng: Optional[random.Random] = None):
        self.delay_seconds = delay_seconds
        self.rng = rng or random.Random()

    def audit(self, url: str) -> BrowserAudit:
        if self.delay_seconds > 0:
            time.sleep(self.delay_seconds)

        scores = {
            key: int(round_half_up(low + self.rng.random() * (high - low)))
            for key, (low, high) in SIMULATED_RANGES.items()
        }
        return BrowserAudit(is_simulated=True, **scores)


class RealAudit:
    """Headless Chromium audit. The browser is closed on every path."""

    def __init__(self, navigation_timeout_ms: int = NAVIGATION_TIMEOUT_MS):
        self.navigation_timeout_ms = navigation_timeout_ms

    def audit(self, url: str) -> BrowserAudit:
        with sync_playwright() as playwright:
            browser = playwright.chromium.launch(headless=True)
            try:
                context = browser.new_context()
                page = context.new_page()

                start = time.monotonic()
                page.goto(url, wait_until="networkidle", timeout=self.navigation_timeout_ms)
                load_time_ms = (time.monotonic() - start) * 1000

                signals = page.evaluate(PAGE_SIGNALS_JS)
                final_url = page.url
            finally:
                browser.close()

        return score_page(load_time_ms, signals or {}, final_url or url)


class BrowserProbe(BaseProbe):
    """
    Dispatches between the real and simulated audits.

    Simulation mode short-circuits to SimulatedAudit. Otherwise RealAudit
    runs once; any exception from it is logged and answered with a
    SimulatedAudit result instead.
    """

    def __init__(
        self,
        real: Optional[RealAudit] = None,
        simulated: Optional[SimulatedAudit] = None,
        simulation: Optional[bool] = None,
    ):
        self.real = real or RealAudit()
        self.simulated = simulated or SimulatedAudit()
        self._simulation = simulation

    @property
    def name(self) -> str:
        return "browser"

    @property
    def simulation(self) -> bool:
        return is_simulation_mode() if self._simulation is None else self._simulation

    def execute(self, request: ProbeRequest) -> BrowserAudit:
        url = request.target_url
        if self.simulation:
            return self.simulated.audit(url)

        try:
            audit = self.real.audit(url)
            logger.info(f"Browser audit complete for {url}: load {audit.load_time_ms} ms")
            return audit
        except Exception as e:
            logger.warning(
                f"Browser audit degraded for {url}, using simulated scores: "
                f"{type(e).__name__}: {e}"
            )
            return self.simulated.audit(url)
