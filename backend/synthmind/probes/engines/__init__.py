# synthmind/probes/engines/__init__.py
"""
Data collection probes.
Each probe collects raw data from a single source.
Probes do NOT score anything — they only gather facts.
"""
from synthmind.probes.engines.load_engine import LoadProbe
from synthmind.probes.engines.browser_engine import BrowserProbe, RealAudit, SimulatedAudit
from synthmind.probes.engines.repo_engine import RepositoryProbe

# Registry of all available probes, keyed by BaseProbe.name.
ALL_PROBES = {
    "load": LoadProbe,
    "browser": BrowserProbe,
    "repository": RepositoryProbe,
}

__all__ = [
    "LoadProbe", "BrowserProbe", "RealAudit", "SimulatedAudit",
    "RepositoryProbe", "ALL_PROBES",
]
