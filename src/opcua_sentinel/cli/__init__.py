"""
Operational CLI for OPC-UA Sentinel.
"""
