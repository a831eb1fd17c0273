from .abc import UserProviderABC
from .dictionary import DictUserProvider
from .mongodb import MongoDBUserProvider

__all__ = [
	"UserProviderABC",
	"DictUserProvider",
	"MongoDBUserProvider",
]
