"""Observability - logging, telemetry, confidence thresholds"""
