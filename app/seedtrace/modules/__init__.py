"""
Feature modules. Each module owns its models, service functions and blueprint.
"""
