"""Cluster node bootstrap service.

Nodes present their cloud provider reference; the service re-derives their
role labels from the provider's instance record and signs node credentials
with the cluster certificate authorities.
"""
