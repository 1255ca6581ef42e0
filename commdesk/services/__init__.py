"""Services package: expose all concrete services from one import."""
from .client_service import ClientService
from .commission_service import CommissionService
from .image_service import ImageService
from .data_service import DataService

__all__ = [
    'ClientService',
    'CommissionService',
    'ImageService',
    'DataService',
]
