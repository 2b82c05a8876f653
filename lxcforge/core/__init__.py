"""Core provisioning logic for lxcforge."""
