"""
Diagnoses and remediation advice attached to CWV alerts.
"""
from typing import Any

DIAGNOSES: dict[str, dict[str, Any]] = {
    "LCP": {
        "issue": "Largest Contentful Paint is slow",
        "impact": "Users see content loading slowly",
        "recommendations": [
            "Optimize images (use WebP, proper sizing)",
            "Implement lazy loading for below-fold images",
            "Reduce server response time (TTFB)",
            "Remove render-blocking JavaScript and CSS",
            "Use a CDN for static assets",
            'Preload LCP image with <link rel="preload">',
        ],
        "priority": "high",
    },
    "INP": {
        "issue": "Interaction to Next Paint is slow",
        "impact": "Page feels sluggish when users interact",
        "recommendations": [
            "Reduce JavaScript execution time",
            "Break up long tasks into smaller chunks",
            "Use web workers for heavy computations",
            "Defer non-critical JavaScript",
            "Optimize event handlers",
            "Remove unnecessary third-party scripts",
        ],
        "priority": "high",
    },
    "CLS": {
        "issue": "Cumulative Layout Shift is high",
        "impact": "Content jumps around unexpectedly",
        "recommendations": [
            "Set explicit width/height on images and videos",
            "Reserve space for ads and embeds",
            "Avoid inserting content above existing content",
            "Use CSS aspect-ratio for responsive images",
            "Preload fonts to avoid FOIT/FOUT",
            "Avoid animations that cause layout shifts",
        ],
        "priority": "medium",
    },
    "FCP": {
        "issue": "First Contentful Paint is slow",
        "impact": "Users wait too long to see any content",
        "recommendations": [
            "Reduce server response time",
            "Eliminate render-blocking resources",
            "Minimize critical CSS",
            "Preconnect to required origins",
            "Use HTTP/2 or HTTP/3",
            "Enable text compression (Gzip/Brotli)",
        ],
        "priority": "high",
    },
    "TTFB": {
        "issue": "Time to First Byte is slow",
        "impact": "Server takes too long to respond",
        "recommendations": [
            "Use object caching (Redis/Memcached)",
            "Enable page caching",
            "Optimize database queries",
            "Upgrade hosting plan",
            "Use a CDN",
            "Reduce plugin overhead",
        ],
        "priority": "critical",
    },
}


def diagnose(metric: str) -> dict[str, Any]:
    """Return a copy of the diagnosis for a metric, or an empty dict."""
    diagnosis = DIAGNOSES.get(metric)
    if diagnosis is None:
        return {}
    return {**diagnosis, "recommendations": list(diagnosis["recommendations"])}
