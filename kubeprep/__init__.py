"""kubeprep - prepare a fleet of hosts for a kubeadm-based Kubernetes cluster."""

__version__ = "0.1.0"
