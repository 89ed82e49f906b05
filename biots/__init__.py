# SPDX-License-Identifier: MIT
"""
Artificial-life evolution engine.

`biots.sim` hosts the genome model, the cell lifecycle, the population
policy and the headless world; `biots.core` holds configuration, logging
setup and the simulation backend. `biots.main` is the command line entry
point.
"""

__all__ = ["main"]
