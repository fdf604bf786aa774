"""
Kubernetes building blocks for the build pod executor.

Each module owns one step of a job's pod lifecycle: limits, pod spec,
creation/deletion, readiness, exec streaming and cancellation.
"""
