"""
Sensory Dashboard
Procedural ambient sound engine and three-channel mixer backend
"""

__version__ = "0.1.0"
