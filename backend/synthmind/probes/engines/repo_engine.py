# synthmind/probes/engines/repo_engine.py
"""
Repository probe — deployment/operational signals from a GitHub repository.

Reads the repository's file tree through the GitHub REST API and reports
which operational building blocks are present. It does not clone anything
and never executes repository code.

Accepted identifiers:
    owner/repo
    https://github.com/owner/repo(.git)(/tree/...)
    git@github.com:owner/repo.git

Signals:
    docker      — Dockerfile, *.dockerfile, docker-compose / compose files
    cicd        — GitHub Actions workflows, GitLab CI, CircleCI, Jenkins,
                  Travis, Azure Pipelines, Bitbucket Pipelines
    kubernetes  — k8s/, kubernetes/, manifests/, helm/ yaml, Chart.yaml,
                  kustomization.yaml, skaffold.yaml
    start script — package.json with scripts.start, or a Procfile

Config:
    GITHUB_TOKEN — optional; raises the API rate limit from 60 to 5000/h
"""

from __future__ import annotations

import base64
import json
import logging
import os
import re
from typing import Any, Dict, List, Optional, Tuple

import requests

from synthmind.probes.base import (
    BaseProbe,
    FailureReason,
    ProbeRequest,
    RepositoryAnalysisFailed,
    RepositorySignals,
    SignalPresence,
)

logger = logging.getLogger(__name__)

GITHUB_API = "https://api.github.com"
REQUEST_TIMEOUT = 15

# Keep at most this many matching paths per signal in the result.
MAX_FILES_PER_SIGNAL = 10

_SLUG_RE = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")
_URL_RE = re.compile(
    r"^(?:https?://|git@)(?:www\.)?github\.com[/:]([A-Za-z0-9_.-]+)/([A-Za-z0-9_.-]+?)(?:\.git)?(?:[/?#].*)?$",
    re.IGNORECASE,
)

DOCKER_PATTERNS = [
    re.compile(r"(^|/)Dockerfile(\.[\w.-]+)?$"),
    re.compile(r"(^|/)[\w.-]+\.dockerfile$", re.IGNORECASE),
    re.compile(r"(^|/)(docker-)?compose(\.[\w-]+)?\.ya?ml$", re.IGNORECASE),
]

CICD_PATTERNS = [
    re.compile(r"^\.github/workflows/[^/]+\.ya?ml$"),
    re.compile(r"^\.gitlab-ci\.ya?ml$"),
    re.compile(r"^\.circleci/config\.ya?ml$"),
    re.compile(r"(^|/)Jenkinsfile$"),
    re.compile(r"^\.travis\.ya?ml$"),
    re.compile(r"^azure-pipelines\.ya?ml$"),
    re.compile(r"^bitbucket-pipelines\.ya?ml$"),
]

KUBERNETES_PATTERNS = [
    re.compile(r"(^|/)(k8s|kubernetes|manifests|helm|charts|deploy/k8s)/.+\.ya?ml$", re.IGNORECASE),
    re.compile(r"(^|/)Chart\.ya?ml$"),
    re.compile(r"(^|/)kustomization\.ya?ml$"),
    re.compile(r"(^|/)skaffold\.ya?ml$"),
]


def parse_repository(identifier: str) -> Tuple[str, str]:
    """
    Extract (owner, repo) from a slug or GitHub URL.
    Raises RepositoryAnalysisFailed for anything that is not a GitHub repo.
    """
    value = (identifier or "").strip()
    if _SLUG_RE.match(value):
        owner, repo = value.split("/", 1)
        return owner, repo[:-4] if repo.endswith(".git") else repo

    match = _URL_RE.match(value)
    if match:
        return match.group(1), match.group(2)

    raise RepositoryAnalysisFailed(f"Not a GitHub repository identifier: {identifier!r}")


def _matching(paths: List[str], patterns: List[re.Pattern]) -> SignalPresence:
    files = [p for p in paths if any(rx.search(p) for rx in patterns)]
    return SignalPresence(present=bool(files), files=files[:MAX_FILES_PER_SIGNAL])


class RepositoryProbe(BaseProbe):
    """Static deployment-readiness scan of a GitHub repository."""

    default_failure = FailureReason.REPOSITORY_ANALYSIS_FAILED

    def __init__(self, token: Optional[str] = None, session: Optional[requests.Session] = None):
        self.token = token if token is not None else os.getenv("GITHUB_TOKEN")
        self.session = session or requests.Session()

    @property
    def name(self) -> str:
        return "repository"

    def can_run(self, request: ProbeRequest) -> bool:
        return bool((request.repository or "").strip())

    def execute(self, request: ProbeRequest) -> RepositorySignals:
        owner, repo = parse_repository(request.repository)
        slug = f"{owner}/{repo}"

        logger.info(f"Repository probe: analyzing {slug}")

        meta = self._get_json(f"{GITHUB_API}/repos/{slug}")
        branch = meta.get("default_branch") or "main"

        tree = self._get_json(
            f"{GITHUB_API}/repos/{slug}/git/trees/{branch}",
            params={"recursive": "1"},
        )
        if tree.get("truncated"):
            logger.warning(f"Repository probe: tree for {slug} truncated by GitHub, signals may be partial")

        paths = [
            entry.get("path", "")
            for entry in tree.get("tree") or []
            if isinstance(entry, dict) and entry.get("type") == "blob"
        ]

        return RepositorySignals(
            repository=slug,
            default_branch=branch,
            docker=_matching(paths, DOCKER_PATTERNS),
            cicd=_matching(paths, CICD_PATTERNS),
            kubernetes=_matching(paths, KUBERNETES_PATTERNS),
            has_start_script=self._has_start_script(slug, branch, paths),
        )

    def _has_start_script(self, slug: str, branch: str, paths: List[str]) -> bool:
        if "Procfile" in paths:
            return True
        if "package.json" not in paths:
            return False

        content = self._get_json(
            f"{GITHUB_API}/repos/{slug}/contents/package.json",
            params={"ref": branch},
        )
        try:
            raw = base64.b64decode(content.get("content") or "").decode("utf-8")
            package = json.loads(raw)
        except (ValueError, UnicodeDecodeError) as e:
            logger.warning(f"Repository probe: unreadable package.json in {slug}: {e}")
            return False

        scripts = package.get("scripts") if isinstance(package, dict) else None
        return isinstance(scripts, dict) and bool(scripts.get("start"))

    def _get_json(self, url: str, params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": "synthmind-repository-probe/1.0",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        try:
            r = self.session.get(url, params=params, headers=headers, timeout=REQUEST_TIMEOUT)
        except requests.RequestException as e:
            raise RepositoryAnalysisFailed(f"GitHub API request failed: {e}")

        if r.status_code == 404:
            raise RepositoryAnalysisFailed(f"Repository not found or private: {url}")
        if r.status_code == 403 and r.headers.get("X-RateLimit-Remaining") == "0":
            raise RepositoryAnalysisFailed("GitHub API rate limit exceeded (set GITHUB_TOKEN)")
        if r.status_code != 200:
            raise RepositoryAnalysisFailed(f"GitHub API returned {r.status_code} for {url}")

        try:
            data = r.json()
        except ValueError as e:
            raise RepositoryAnalysisFailed(f"GitHub API returned invalid JSON: {e}")
        if not isinstance(data, dict):
            raise RepositoryAnalysisFailed(f"Unexpected GitHub API payload for {url}")
        return data
