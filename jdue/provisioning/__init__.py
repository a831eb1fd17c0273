from .service import ProvisioningService

__all__ = [
	"ProvisioningService",
]
