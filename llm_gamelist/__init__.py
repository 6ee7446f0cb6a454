"""Generate EmulationStation gamelists for ROM folders with a local language model."""

__version__ = "0.1.0"
