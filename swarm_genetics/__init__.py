"""
Swarm Genetics: heritable traits and breeding contracts for trading swarms

Each swarm carries a genetic profile of twelve behavioral traits. Two
swarms can be bred through a multi-party contract; the offspring
inherits a dominance-weighted blend of its parents' traits, subject to
tiered random mutation, and may unlock legendary traits and synergies.
"""

__version__ = "0.1.0"
