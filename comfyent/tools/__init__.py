"""
Command-line tools for comfyent.

- schema_cli: Snapshot entity definitions and check databases against them
"""
