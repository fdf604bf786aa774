"""Run CI job commands inside an ephemeral Kubernetes build pod."""

__version__ = "0.1.0"
