"""
HTTP backend for the AquaWatch dashboard: alerts, recipients, broadcasts and
the real-time monitoring pipeline.
"""
