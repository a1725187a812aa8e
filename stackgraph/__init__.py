"""stackgraph: dependency-ordered provisioning of an AKS + Application Gateway stack."""

__version__ = "0.1.0"
