"""
Decision-making under partial observability: finite POMDP models, Bayesian belief
updates and alpha-vector policies, with a spacecraft collision-avoidance scenario.
"""

__version__ = "0.1.0"
