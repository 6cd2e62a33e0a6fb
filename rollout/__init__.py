"""
Rolling artifact deployment for tagged instance fleets.

Pushes a published release bundle onto every instance of a service, a
bounded number at a time, and gates each host on a health check.
"""

from .deployment.orchestrator import deploy

__version__ = '0.1.0'

__all__ = ['deploy']
