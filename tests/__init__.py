"""Test package for the Mental Math Trainer.

Core tests drive the session, timer and flash-round state machines with a fake
clock and a polling scheduler, so no test waits in real time. The UI smoke
tests run pygame with the dummy SDL drivers. Run ``pytest`` from the project
root.
"""
