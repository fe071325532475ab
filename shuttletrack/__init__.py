"""
shuttletrack - shuttle detection, trajectory smoothing and virtual-net collision.
"""
__version__ = "0.1.0"
