"""Management API session, resource provisioning and run orchestration."""
