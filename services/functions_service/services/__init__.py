"""Functions Service business logic: account provisioning, invitations and
subscription events."""
