from .collector import ConnectionCollector
from .procnet import read_tcp, read_udp
from .linux import listening_processes
