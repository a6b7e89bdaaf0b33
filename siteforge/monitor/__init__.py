"""Terminal display for deployments.

Modules
-------
renderer
    ``DeployRenderer`` turns diffs, transaction logs and progress events
    into Rich renderables.
"""
