"""
Deployment and orchestration package.

This package contains the control-plane side of a rollout: preflight and
dispatch, job monitoring, and the command line entry point.
"""

__all__ = ['orchestrator', 'dispatcher', 'monitor', 'utils']
