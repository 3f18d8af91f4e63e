"""Core computational modules for CellType-Integrator.

This package contains the main engines:
- features: identifier intersection and marker reindexing
- scoring: ranked vectors, rank remapping, scaled ranks and correlation scores
- integrated: integrated training and multi-reference classification
"""
