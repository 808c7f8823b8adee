from .user import User
from .task import Task, TaskStatus, Category
from .assignment import TaskAssignment, AssignmentStatus
from .invoice import Invoice, InvoiceItem
from .payment import Payment
from .cart import Cart
from .review import Review, ReviewType
from .chat import Conversation, ConversationParticipant, Message
