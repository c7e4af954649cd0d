from synthmind.probes.analyzers.scoring import REMEDIATION_CACHING, summarize_repository
from synthmind.probes.base import BrowserAudit, DerivedScores, UnifiedMetrics
from synthmind.probes.context import MAX_CONTEXT_CHARS, build_context

METRICS = UnifiedMetrics(
    latency_avg=1000.0,
    latency_p95=612.3,
    throughput=50.0,
    failure_rate=0.1,
    server_error_rate=0.02,
    vus=200,
)
DERIVED = DerivedScores(
    conversion_loss_pct=7.0,
    ad_spend_risk=3750,
    stability_risk_score=19.38,
    collapse_point_vus=180,
    remediations=[REMEDIATION_CACHING],
)


def test_sections_in_fixed_order(repo_signals, browser_audit):
    repo_signals.summary = summarize_repository(repo_signals)

    text = build_context("https://shop.example.com", METRICS, DERIVED, repo_signals, browser_audit)

    headings = [
        "Target under test: https://shop.example.com",
        "Runtime Metrics (Observed):",
        "Derived Business Risk:",
        "Repository Signals (Static):",
        "Browser Experience Audit (External):",
    ]
    positions = [text.index(h) for h in headings]
    assert positions == sorted(positions)


def test_metric_lines_are_formatted(repo_signals):
    text = build_context("https://shop.example.com", METRICS, DERIVED, repo_signals)

    assert "- Virtual Users: 200" in text
    assert "- Failure Rate: 10.00%" in text
    assert "- p95 Latency: 612.3 ms" in text
    assert "- Server Error Rate (5xx): 2.00%" in text
    assert "Grade F" in text
    assert f"- Recommended: {REMEDIATION_CACHING}" in text
    assert "- CI/CD: Not detected" in text
    assert "- Docker: Detected" in text


def test_absent_sections_are_omitted():
    text = build_context("acme/shop")

    assert text.startswith("Target under test: acme/shop")
    assert "Runtime Metrics" not in text
    assert "Derived Business Risk" not in text
    assert "Repository Signals" not in text
    assert "Browser Experience Audit" not in text


def test_derived_scores_need_metrics():
    assert "Derived Business Risk" not in build_context("https://shop.example.com", None, DERIVED)


def test_unavailable_values():
    text = build_context("https://shop.example.com", UnifiedMetrics())

    assert "- Virtual Users: N/A" in text
    assert "- Failure Rate: 0.00%" in text
    assert "- Throughput: N/A req/s" in text


def test_simulated_browser_scores_are_flagged():
    audit = BrowserAudit(80, 90, 85, 95, 85, is_simulated=True)

    text = build_context("https://shop.example.com", browser=audit)

    assert "simulated" in text
    assert "Real Browser Load Time" not in text


def test_context_is_capped():
    text = build_context("https://shop.example.com/" + "a" * 10_000, METRICS, DERIVED)
    assert len(text) == MAX_CONTEXT_CHARS


def test_identical_inputs_give_identical_context(repo_signals, browser_audit):
    args = ("https://shop.example.com", METRICS, DERIVED, repo_signals, browser_audit)
    assert build_context(*args) == build_context(*args)
