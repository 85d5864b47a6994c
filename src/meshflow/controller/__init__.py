"""
CONTROLLER LAYER
Drives the workflow: navigation between steps, the result pipeline and the
background workers running it.
"""
