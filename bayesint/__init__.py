"""
bayesint
========
Bayesian inference of time series timescales with Approximate Bayesian
Computation.
"""
