from .banking import (create_bank_account, delete_bank_account,
                      delete_bank_transaction, reconcile_transactions,
                      record_bank_transaction, update_bank_account,
                      update_bank_transaction)
from .chart import assign_role_account, role_account, seed_chart_of_accounts
from .expenses import (approve_expense_claim, create_expense_claim,
                       delete_expense_claim, reject_expense_claim,
                       submit_expense_claim, update_expense_claim)
from .payment import allocate_payment, record_payment
from .posting import (BillRecorder, InvoicePoster, create_bill, create_invoice,
                      update_draft_bill, update_draft_invoice)
from .records import (create_account, create_contact, create_tax_rate,
                      delete_account, delete_contact, delete_tax_rate,
                      update_account, update_contact, update_tax_rate)
from .reports import ReportEngine
from .update import (StatusMachine, approve_bill, cancel_bill, cancel_invoice,
                     delete_draft_bill, delete_draft_invoice,
                     mark_bill_paid, mark_invoice_overdue,
                     mark_overdue_documents, send_invoice, transition)
