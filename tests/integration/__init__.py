"""Integration tests for Fabric workspace publish and unpublish.

These tests run the real FabricEndpoint (token handling, long-running
operation polling, error classification) against an in-memory Fabric
workspace service together with on-disk repositories built in tmp_path.
No network access or credentials are required.
"""
