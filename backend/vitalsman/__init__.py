"""
Vitalsman: Core Web Vitals collection and ingestion.
"""
__version__ = "0.1.0"
