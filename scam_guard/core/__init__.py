"""
Core modules for Scam Guard.

This package contains scan admission, quota reservation, subscription
tiers, the analysis engine contract and emergency escalation.
"""
