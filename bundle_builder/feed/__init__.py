"""Change feeds — sources of ``PolicyResource`` events for the driver.

- configmaps: watch labelled ConfigMaps in one namespace
- manifest: read ConfigMap manifests from YAML files
"""
