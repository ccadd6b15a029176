# Shared Common Library for the Field Inspection services
# This package contains shared authentication, permissions, error handling
# and model mixins used across the microservices.

__version__ = "1.0.0"
