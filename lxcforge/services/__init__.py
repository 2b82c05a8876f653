"""Service layer for lxcforge."""
