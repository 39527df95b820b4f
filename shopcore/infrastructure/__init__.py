"""Infrastructure module.

Configuration, logging, persistence and external rate services.
"""
