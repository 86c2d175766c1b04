"""
qi - a script runner over cached git repositories.

Repositories are cloned once into a local cache; their scripts are then
run by bare name from anywhere.
"""

__version__ = "1.0.0"
__author__ = "qi developers"
