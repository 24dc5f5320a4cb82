"""tasklink - host-side loader and task controller for a serial task supervisor"""

from .serial_transport import SerialTransport, DeviceDrain
from .controller import TaskLinkController
from .dump_store import DumpStore

__all__ = ['SerialTransport', 'DeviceDrain', 'TaskLinkController', 'DumpStore']
