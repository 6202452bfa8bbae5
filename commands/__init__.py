"""
This __init__.py file makes the 'commands' directory a Python package.

Each module defines the handler for one or more CLI commands.
"""
