"""Clients for external systems.

The operator talks to exactly one external system, the Kubernetes API
server, through `KubeCluster`.
"""

from arcane_operator.clients.kube_cluster import KubeCluster, KubernetesErrorClassifier, ResourceList
from arcane_operator.clients.watch_stream import WatchEventStream

__all__ = ["KubeCluster", "KubernetesErrorClassifier", "ResourceList", "WatchEventStream"]
