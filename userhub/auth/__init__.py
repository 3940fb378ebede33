"""Authentication and authorization: token verification, RBAC rules, and the authorization service."""
