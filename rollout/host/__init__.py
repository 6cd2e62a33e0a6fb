"""
Per-host deployment package.

Everything here runs on the target instance: artifact verification, the
release store, runtime configuration, process control and the health gate.
"""

from .pipeline import HostProcedure
from .process import Pm2Supervisor
from ..parameters import get_parameter_store
from ..storage import get_storage_backend


def build_procedure(context, stdout=None, stderr=None):
    """Wire the production collaborators for a host context."""
    storage = get_storage_backend(
        context.storage_backend, bucket=context.bucket,
        region=context.region, root=context.storage_root
    )
    parameters = get_parameter_store(
        context.parameter_backend, region=context.region,
        parameter_file=context.parameter_file
    )
    supervisor = Pm2Supervisor(run_as_user=context.run_as_user or None)
    return HostProcedure(context, storage, parameters, supervisor, stdout=stdout, stderr=stderr)


__all__ = ['HostProcedure', 'Pm2Supervisor', 'build_procedure']
