from .user import User
from .folder import Folder
from .file import File
from .share import Share
from .audit_log import AuditLog
from .whatsapp_session import WhatsAppSession
# base and mixins are imported by the above as needed
