from .account import (EXPENSE_TYPES, REVENUE_TYPES, Account, AccountRole,
                      AccountType, PostingAccount)
from .banking import BankAccount, BankTransaction, BankTransactionType
from .bill import Bill, BillLineItem, BillStatus
from .contact import Contact, ContactType
from .expense import ExpenseClaim, ExpenseClaimLine, ExpenseClaimStatus
from .invoice import Invoice, InvoiceLineItem, InvoiceStatus
from .item import Item
from .journal import JournalEntry, JournalEntryLine
from .organization import Membership, MembershipRole, Organization
from .payment import Payment, PaymentAllocation
from .tax import TaxRate, TaxRateType
