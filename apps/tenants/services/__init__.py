"""
Services for business (tenant) management.
"""
from .business_service import BusinessService

__all__ = [
    'BusinessService',
]
