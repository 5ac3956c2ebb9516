"""
Print Pricing Package

Pricing and cost-derivation engine for a print shop back office.
Turns rate tables, volume tiers and sheet-layout geometry into per-item prices.
"""

__version__ = "1.0.0"
