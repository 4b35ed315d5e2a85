"""
Clash Staking — staking event sync and staker leaderboards
© 2025 Karlheinz Beismann — VEra-Resonance Project
Licensed under the Apache License, Version 2.0
"""

__version__ = "0.1.0"
