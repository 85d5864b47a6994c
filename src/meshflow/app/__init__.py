"""
VIEW LAYER
PySide6 widgets showing the workflow: one panel per step, a shared Back button
and error dialogs. Widgets only read the WorkflowState and forward user actions
to the WorkflowController.
"""
