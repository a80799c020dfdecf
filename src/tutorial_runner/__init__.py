"""Tutorial Runner - scripted AWS getting-started tutorials.

This package provides a small command-runner library for AWS tutorials:
sequential provisioning with identifier capture, status polling, a structured
resource ledger and reverse-order cleanup, together with a set of tutorials
written against it.
"""

__version__ = "0.1.0"
__author__ = "Tutorial Runner Contributors"
__license__ = "MIT"

__all__ = ["__author__", "__license__", "__version__"]
