"""Derivation of node labels from an instance record.

Role labels are written in two styles at once: the legacy single
``kubernetes.io/role=<role>`` label and the newer valueless
``node-role.kubernetes.io/<role>`` label. Consumers may read either.
"""

from nodebootstrap.domain.models import (
    DEFAULT_WORKER_GROUP,
    LABEL_INSTANCE_GROUP,
    LABEL_ROLE_LEGACY,
    LABEL_ROLE_PREFIX,
    ROLE_MASTER,
    ROLE_NODE,
    TAG_CONTROL_PLANE,
    TAG_INSTANCE_GROUP,
    TAG_LABEL_PREFIX,
    InstanceRecord,
    LabelSet,
)


def derive_labels(instance: InstanceRecord) -> LabelSet:
    """Build the label set for a node from its instance record.

    Precedence:
    1. lifecycle (spot, scheduled, ...) -> ``<lifecycle>-worker=true``
    2. ``k8s:labels:<key>`` tags copied with the prefix stripped
    3. control-plane tag -> master role + instance group
    4. otherwise instance group "nodes" -> node role + instance group
    5. otherwise no role labels
    """
    labels: LabelSet = {}

    if instance.lifecycle:
        labels[f"{LABEL_ROLE_PREFIX}{instance.lifecycle}-worker"] = "true"

    instance_group = ""
    is_control_plane = False
    for key, value in instance.tags.items():
        if key.startswith(TAG_LABEL_PREFIX):
            labels[key[len(TAG_LABEL_PREFIX) :]] = value
        if key == TAG_INSTANCE_GROUP:
            instance_group = value
        if key == TAG_CONTROL_PLANE:
            is_control_plane = True

    if is_control_plane:
        _set_role(labels, ROLE_MASTER, instance_group)
    elif instance_group == DEFAULT_WORKER_GROUP:
        _set_role(labels, ROLE_NODE, instance_group)

    return labels


def _set_role(labels: LabelSet, role: str, instance_group: str) -> None:
    labels[LABEL_ROLE_PREFIX + role] = ""
    labels[LABEL_ROLE_LEGACY] = role
    labels[LABEL_INSTANCE_GROUP] = instance_group
