"""
Casino - Rules engine for the two-player Casino card game.

A deterministic, immutable-state engine that decides the legality and the
consequence of every player action:
- Trailing, building, capturing
- Reinforcing, merging and stealing builds
- Multi-step staging compositions
- Round transitions, the final sweep and scoring

A thin room relay and a FastAPI surface sit on top of the engine.
"""

__version__ = "0.1.0"
