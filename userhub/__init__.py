"""userhub: user management API with role and permission based access control."""

__version__ = "1.0.0"
