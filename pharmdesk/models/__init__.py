from pharmdesk.models.user import User
from pharmdesk.models.supplier import Supplier
from pharmdesk.models.medicine import Medicine
from pharmdesk.models.inventory import StockMovement
from pharmdesk.models.sales import Sale, SaleItem
from pharmdesk.models.audit_log import AuditLog
