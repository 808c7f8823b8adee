from decimal import Decimal

import pytest
from flask_login import login_user

from neigh import create_app
from neigh.config import Config
from neigh.extensions import db
from neigh.models import (
    AssignmentStatus,
    Conversation,
    ConversationParticipant,
    Invoice,
    InvoiceItem,
    Task,
    TaskAssignment,
    User,
)


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    WTF_CSRF_ENABLED = False
    MAIL_SUPPRESS_SEND = True
    MAIL_DEFAULT_SENDER = "noreply@example.com"
    LOG_DIR = None
    LOG_LEVEL = "WARNING"
    SENTRY_DSN = ""
    SESSION_COOKIE_SECURE = False
    PAYMENT_METHODS = ["PAYPAL", "COD"]
    TAX_RATE = "0.21"
    PAGE_SIZE = 10


class FakeNotifier:
    def __init__(self):
        self.calls = []

    def notify(self, assignment_id, text, event_type="status-update", sender_id=None, metadata=None):
        self.calls.append({
            "assignment_id": assignment_id,
            "text": text,
            "event_type": event_type,
            "sender_id": sender_id,
            "metadata": metadata,
        })

    def notify_task_archived(self, task):
        self.calls.append({"task_id": task.id, "event_type": "task-archived"})
        return 0


class FakePayPal:
    def __init__(self, order_id="ORDER-1", capture_id=None, capture_status="COMPLETED"):
        self.order_id = order_id
        self.capture_id = capture_id
        self.capture_status = capture_status
        self.created = []
        self.captured = []

    def create_payment(self, amount):
        self.created.append(amount)
        return {"id": self.order_id, "status": "CREATED"}

    def capture_payment(self, order_id):
        self.captured.append(order_id)
        return {
            "id": self.capture_id or order_id,
            "status": self.capture_status,
            "payer": {"email_address": "buyer@example.com"},
            "purchase_units": [
                {"payments": {"captures": [{"amount": {"value": "121.00"}}]}},
            ],
        }


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def ctx(app):
    """Request context for calling services directly (session + current_user)."""
    with app.test_request_context():
        yield


@pytest.fixture
def login(ctx):
    def _login(user):
        login_user(user)
        return user
    return _login


def make_user(name, email, role="client", password="secret123"):
    user = User(name=name, email=email, role=role)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def client_user(ctx):
    return make_user("Clara Client", "clara@example.com")


@pytest.fixture
def contractor(ctx):
    return make_user("Carl Contractor", "carl@example.com", role="contractor")


@pytest.fixture
def other_contractor(ctx):
    return make_user("Olga Other", "olga@example.com", role="contractor")


@pytest.fixture
def admin(ctx):
    return make_user("Ada Admin", "ada@example.com", role="admin")


def make_task(owner, name="Fix the garden fence", price="100.00"):
    task = Task(
        name=name,
        description="Three loose panels need new posts.",
        price=Decimal(price),
        created_by_id=owner.id,
    )
    db.session.add(task)
    db.session.commit()
    return task


def make_assignment(task, client, contractor, status=AssignmentStatus.IN_PROGRESS):
    assignment = TaskAssignment(
        task_id=task.id,
        client_id=client.id,
        contractor_id=contractor.id,
        status=status,
    )
    db.session.add(assignment)
    db.session.commit()
    return assignment


def make_conversation(task, *users):
    conv = Conversation(task_id=task.id)
    conv.participants = [ConversationParticipant(user_id=u.id) for u in users]
    db.session.add(conv)
    db.session.commit()
    return conv


def make_invoice(client, contractor, assignment, total="121.00", number="INV-TEST-1"):
    invoice = Invoice(
        invoice_number=number,
        client_id=client.id,
        contractor_id=contractor.id,
        total_price=Decimal(total),
    )
    invoice.items = [InvoiceItem(
        task_id=assignment.task_id,
        assignment_id=assignment.id,
        name="Service",
        quantity=1,
        price=Decimal("100.00"),
    )]
    db.session.add(invoice)
    db.session.commit()
    return invoice


@pytest.fixture
def task(client_user):
    return make_task(client_user)


@pytest.fixture
def assignment(task, client_user, contractor):
    return make_assignment(task, client_user, contractor)


@pytest.fixture
def conversation(task, client_user, contractor):
    return make_conversation(task, client_user, contractor)


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def paypal():
    return FakePayPal()
