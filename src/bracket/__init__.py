"""
Single elimination "pick one" bracket engine with win/loss statistics and a
cross-tournament popularity ranking.
"""
