"""
DONTCLOSETHIS — Game Engine

Level sequencing, timers, persistence and the remote leaderboard client.
Import the pieces from their modules (engine.sequencer, engine.timers, ...).
"""
