from .sources import Iface, InterfaceEnumerator, PsutilInterfaces
from .resolver import InterfaceResolver, choose_primary, map_addresses
