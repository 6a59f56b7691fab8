"""Session diagnostics.

Records the commands written to and the replies read from the gateway,
for debugging device conversations.
"""

from mv370.logging.log_models import LogEntry
from mv370.logging.file_handler import FileHandler
from mv370.logging.communication_logger import CommunicationLogger

__all__ = ['LogEntry', 'FileHandler', 'CommunicationLogger']
