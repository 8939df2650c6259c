"""
trial_bayes: simulated two-arm clinical trial, synthetic data generation and
Bayesian treatment-effect analysis (PyMC + ArviZ).
"""

__version__ = "0.1.0"
