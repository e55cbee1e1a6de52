"""
Probe declarations.

One class per capability; every probe is invoked through ``execute_probe``.
"""

from readiness.probes.base import Probe, ProbeContext, execute_probe
from readiness.probes.container import CommandProbe, ContainerStateProbe
from readiness.probes.http import AuthenticatedApiProbe, HttpStatusProbe
from readiness.probes.logs import LogScanProbe
from readiness.probes.network import TcpProbe

__all__ = [
    "AuthenticatedApiProbe",
    "CommandProbe",
    "ContainerStateProbe",
    "HttpStatusProbe",
    "LogScanProbe",
    "Probe",
    "ProbeContext",
    "TcpProbe",
    "execute_probe",
]
