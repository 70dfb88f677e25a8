import pytest

from kubemon.gce_metadata import MetadataError
from kubemon.kube_objects import Event, ObjectReference
from kubemon.resources import (
    CLUSTER_NAME,
    GKE_CLUSTER,
    K8S_CLUSTER,
    K8S_NODE,
    K8S_POD,
    LOCATION,
    NAMESPACE_NAME,
    NODE_KIND,
    NODE_NAME,
    POD_KIND,
    POD_NAME,
    PROJECT_ID,
    MonitoredResource,
    MonitoredResourceFactory,
    MonitoredResourceFactoryConfig,
    ResourceModel,
    load_factory_config,
    resource_model_version,
)


def factory_config(model):
    return MonitoredResourceFactoryConfig(
        resource_model=model,
        cluster_name="test_cluster_name",
        location="test_cluster_location",
        project_id="test_project_id",
    )


COMMON = {
    CLUSTER_NAME: "test_cluster_name",
    LOCATION: "test_cluster_location",
    PROJECT_ID: "test_project_id",
}


@pytest.mark.parametrize(
    "model, event, wanted",
    [
        (ResourceModel.OLD, None, MonitoredResource(GKE_CLUSTER, dict(COMMON))),
        (
            ResourceModel.NEW,
            Event(
                involved_object=ObjectReference(
                    kind=POD_KIND, name="test_pod_name", namespace="test_pod_namespace"
                )
            ),
            MonitoredResource(
                K8S_POD,
                {**COMMON, POD_NAME: "test_pod_name", NAMESPACE_NAME: "test_pod_namespace"},
            ),
        ),
        (
            ResourceModel.NEW,
            Event(involved_object=ObjectReference(kind=NODE_KIND, name="test_node_name")),
            MonitoredResource(K8S_NODE, {**COMMON, NODE_NAME: "test_node_name"}),
        ),
        (
            ResourceModel.NEW,
            Event(involved_object=ObjectReference(kind="somethingElse")),
            MonitoredResource(K8S_CLUSTER, dict(COMMON)),
        ),
    ],
)
def test_monitored_resource_from_event(model, event, wanted):
    factory = MonitoredResourceFactory(factory_config(model))
    assert factory.resource_from_event(event) == wanted


@pytest.mark.parametrize(
    "model, wanted",
    [
        (ResourceModel.OLD, MonitoredResource(GKE_CLUSTER, dict(COMMON))),
        (ResourceModel.NEW, MonitoredResource(K8S_CLUSTER, dict(COMMON))),
    ],
)
def test_default_monitored_resource(model, wanted):
    assert MonitoredResourceFactory(factory_config(model)).default_resource == wanted


def test_pod_resource_leaves_common_labels_alone():
    factory = MonitoredResourceFactory(factory_config(ResourceModel.NEW))
    factory.resource_from_event(
        Event(involved_object=ObjectReference(kind=POD_KIND, name="p", namespace="n"))
    )
    assert factory.common_labels == COMMON


def test_resource_to_dict():
    resource = MonitoredResource(K8S_NODE, {NODE_NAME: "n"})
    assert resource.to_dict() == {"type": "k8s_node", "labels": {"node_name": "n"}}


@pytest.mark.parametrize(
    "value, expected",
    [("new", ResourceModel.NEW), ("old", ResourceModel.OLD), ("", ResourceModel.OLD)],
)
def test_resource_model_version(value, expected):
    assert resource_model_version(value) is expected


class FakeMetadata:
    def __init__(self, attributes=None, project=None, zone=None):
        self.attributes = attributes or {}
        self.project = project
        self.zone_name = zone

    def instance_attribute(self, name):
        if name not in self.attributes:
            raise MetadataError(f"{name} not defined", status=404)
        return self.attributes[name]

    def project_id(self):
        if self.project is None:
            raise MetadataError("no project", status=404)
        return self.project

    def zone(self):
        if self.zone_name is None:
            raise MetadataError("no zone", status=404)
        return self.zone_name


def test_load_factory_config_reads_metadata():
    metadata = FakeMetadata(
        attributes={"cluster-name": "cluster\n", "cluster-location": "region\n"},
        project="proj",
        zone="zone-a",
    )
    config = load_factory_config("new", metadata)
    assert config == MonitoredResourceFactoryConfig(ResourceModel.NEW, "cluster", "region", "proj")


def test_load_factory_config_falls_back_to_zone():
    metadata = FakeMetadata(attributes={"cluster-location": "  "}, project="proj", zone="zone-a")
    config = load_factory_config("", metadata)
    assert config.location == "zone-a"
    assert config.cluster_name == ""
    assert config.resource_model is ResourceModel.OLD


def test_load_factory_config_needs_project():
    metadata = FakeMetadata(attributes={"cluster-location": "region"}, zone="zone-a")
    with pytest.raises(MetadataError, match="failed to get project id"):
        load_factory_config("new", metadata)


def test_load_factory_config_needs_some_location():
    metadata = FakeMetadata(project="proj")
    with pytest.raises(MetadataError, match="error while getting cluster location"):
        load_factory_config("new", metadata)