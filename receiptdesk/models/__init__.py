from receiptdesk.models.user import User
from receiptdesk.models.payment import Payment
from receiptdesk.models.receipt import Receipt
from receiptdesk.models.reminder import Reminder, ReminderChannel, ReminderStatus
from receiptdesk.models.admin import Admin

# add ALL models here
