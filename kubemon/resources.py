"""Monitored resources that events are attributed to."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from kubemon.gce_metadata import MetadataError

log = logging.getLogger(__name__)

# Resource types of the old model.
GKE_CLUSTER = "gke_cluster"

# Resource types of the new model.
K8S_CLUSTER = "k8s_cluster"
K8S_NODE = "k8s_node"
K8S_POD = "k8s_pod"

# Resource labels.
CLUSTER_NAME = "cluster_name"
LOCATION = "location"
PROJECT_ID = "project_id"
POD_NAME = "pod_name"
NODE_NAME = "node_name"
NAMESPACE_NAME = "namespace_name"

# Kinds of involved objects.
POD_KIND = "Pod"
NODE_KIND = "Node"


class ResourceModel(Enum):
    """The generation of monitored resource types in use."""

    NEW = "new"
    OLD = "old"


@dataclass
class MonitoredResource:
    """A resource type with its identifying labels."""

    type: str = ""
    labels: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"type": self.type, "labels": dict(self.labels)}


@dataclass(frozen=True)
class MonitoredResourceFactoryConfig:
    """What the factory needs to label resources."""

    resource_model: ResourceModel
    cluster_name: str
    location: str
    project_id: str


class MonitoredResourceFactory:
    """Builds the monitored resource an event belongs to."""

    def __init__(self, config: MonitoredResourceFactoryConfig):
        self.resource_model = config.resource_model
        self.common_labels = {
            CLUSTER_NAME: config.cluster_name,
            LOCATION: config.location,
            PROJECT_ID: config.project_id,
        }
        resource_type = GKE_CLUSTER if config.resource_model is ResourceModel.OLD else K8S_CLUSTER
        self.default_resource = MonitoredResource(resource_type, dict(self.common_labels))

    def resource_from_event(self, event) -> MonitoredResource:
        if self.resource_model is ResourceModel.OLD:
            return self.default_resource
        ref = event.involved_object
        if ref.kind == POD_KIND:
            return MonitoredResource(
                K8S_POD,
                {**self.common_labels, POD_NAME: ref.name, NAMESPACE_NAME: ref.namespace},
            )
        if ref.kind == NODE_KIND:
            return MonitoredResource(K8S_NODE, {**self.common_labels, NODE_NAME: ref.name})
        return self.default_resource


def resource_model_version(model) -> ResourceModel:
    """Map a flag value to a resource model; anything but ``"new"`` means the old one."""
    return ResourceModel.NEW if model == ResourceModel.NEW.value else ResourceModel.OLD


def load_factory_config(resource_model, metadata) -> MonitoredResourceFactoryConfig:
    """Read the cluster name, project and location from the metadata server."""
    try:
        cluster_name = metadata.instance_attribute("cluster-name")
    except MetadataError:
        log.warning("'cluster-name' label is not specified on the VM, defaulting to the empty value")
        cluster_name = ""
    cluster_name = cluster_name.strip()

    try:
        project_id = metadata.project_id()
    except MetadataError as err:
        raise MetadataError(f"failed to get project id: {err}") from err

    error = None
    try:
        location = metadata.instance_attribute("cluster-location").strip()
    except MetadataError as err:
        location, error = "", err
    if not location:
        log.warning("Failed to retrieve cluster location, falling back to local zone: %s", error)
        try:
            location = metadata.zone()
        except MetadataError as err:
            raise MetadataError(f"error while getting cluster location: {err}") from err

    return MonitoredResourceFactoryConfig(
        resource_model=resource_model_version(resource_model),
        cluster_name=cluster_name,
        location=location,
        project_id=project_id,
    )