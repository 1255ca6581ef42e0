"""Repository package: expose all concrete repositories from one import."""
from .file_storage import FileStorage
from .client_repository import ClientRepository
from .commission_repository import CommissionRepository, parse_commission

__all__ = [
    'FileStorage',
    'ClientRepository',
    'CommissionRepository',
    'parse_commission',
]
