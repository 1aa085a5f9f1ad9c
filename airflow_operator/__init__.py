"""
Airflow Operator: desired-state layer

Computes, for AirflowBase and AirflowCluster custom resources, the complete
set of Kubernetes child objects each Airflow component should own, how to
find the live copies, when to update them and how to record the outcome in
the root resource's status. Talking to the API server is left to the
reconcile engine that drives these components.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
