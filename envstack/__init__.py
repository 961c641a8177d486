"""Layered environment provisioning (network, identity, load balancer, cluster).

Common entrypoints:

- `envstack.app.upsert.new_environment_upserter`: build the upsert workflow for one environment
- `envstack.framework.config.Config`: parsed configuration
- `envstack.cli`: command line entry point
"""

__version__ = "0.3.0"
