"""Per-frame simulation: value smoothing, coupling and the tick driver.

Import the engine from ``biocascade.simulation.engine``; this package init
stays import-free so configuration modules can use the value and coupling
types without pulling in the engine.
"""
